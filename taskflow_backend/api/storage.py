from __future__ import annotations

import logging
import os
import time
import uuid

from django.core.files.storage import Storage, storages

logger = logging.getLogger(__name__)

UPLOADS_STORAGE_ALIAS = "uploads"


# PUBLIC_INTERFACE
def get_upload_storage() -> Storage:
    """Return the storage backend configured under STORAGES["uploads"]."""
    return storages[UPLOADS_STORAGE_ALIAS]


def generate_stored_name(original_name: str) -> str:
    """Unique storage name keeping the original extension."""
    _, ext = os.path.splitext(original_name)
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}{ext.lower()}"


# PUBLIC_INTERFACE
def save_content(storage: Storage, uploaded_file) -> str:
    """Write uploaded content and return the name it was stored under."""
    return storage.save(generate_stored_name(uploaded_file.name), uploaded_file)


# PUBLIC_INTERFACE
def delete_stored_content(storage: Storage, name: str) -> bool:
    """Remove stored content, best-effort.

    Failures are logged and reported through the return value; they never
    propagate, so metadata deletion can always proceed.
    """
    if not name:
        return False
    try:
        if not storage.exists(name):
            logger.warning("Stored content already missing: %s", name)
            return False
        storage.delete(name)
    except Exception:
        logger.exception("Failed to delete stored content %s", name)
        return False
    return True
