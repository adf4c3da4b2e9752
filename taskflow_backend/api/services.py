from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from django.db.models import Q
from django.utils import timezone

from .models import Activity, File, Project, ProjectMember, Task, User
from .storage import delete_stored_content

logger = logging.getLogger(__name__)

FEEDBACK_PREVIEW_LENGTH = 100
UPCOMING_WINDOW = timedelta(days=7)
RECENT_COMPLETION_WINDOW = timedelta(days=7)
NEW_PROJECT_WINDOW = timedelta(days=30)


# PUBLIC_INTERFACE
def record_activity(
    *,
    action: str,
    description: str,
    actor_id: int,
    project_id: int | None = None,
    task_id: int | None = None,
) -> Activity:
    """Append one activity entry for a completed mutation.

    Callers invoke this after the mutation inside the same transaction, so a
    failed mutation never reaches it and a failed insert rolls the mutation
    back.
    """
    return Activity.objects.create(
        action=action,
        description=description,
        user_id=actor_id,
        project_id=project_id,
        task_id=task_id,
        created_at=timezone.now(),
    )


# PUBLIC_INTERFACE
def get_users_by_ids(ids: Iterable[int | None]) -> list[User]:
    """Fetch the existing users among ``ids`` in one query.

    Duplicates collapse, unknown ids (the anonymous sentinel included) are
    skipped.
    """
    unique_ids = {i for i in ids if i is not None}
    if not unique_ids:
        return []
    return list(User.objects.filter(id__in=unique_ids).order_by("id"))


def users_by_id(ids: Iterable[int | None]) -> dict[int, User]:
    return {user.id: user for user in get_users_by_ids(ids)}


def feedback_preview(content: str) -> str:
    if len(content) > FEEDBACK_PREVIEW_LENGTH:
        return content[:FEEDBACK_PREVIEW_LENGTH] + "..."
    return content


def purge_file_content(files: Iterable[File], storage) -> None:
    """Best-effort removal of stored content for files about to be deleted."""
    for path in [f.path for f in files]:
        delete_stored_content(storage, path)


def files_under_project(project: Project):
    return File.objects.filter(Q(project=project) | Q(task__project=project)).distinct()


# PUBLIC_INTERFACE
def dashboard_stats(now: datetime | None = None) -> dict[str, Any]:
    """Aggregate counts computed on demand against wall-clock time.

    Window bounds are inclusive of ``now``.
    """
    now = now or timezone.now()

    owner_ids = set(Project.objects.values_list("owner_id", flat=True))
    member_ids = set(ProjectMember.objects.values_list("user_id", flat=True))

    tasks = Task.objects.all()
    return {
        "total_projects": Project.objects.count(),
        "in_progress_tasks": tasks.filter(status=Task.Status.IN_PROGRESS).count(),
        "completed_tasks": tasks.filter(status=Task.Status.COMPLETED).count(),
        "team_members": len(owner_ids | member_ids),
        "upcoming_deadlines": tasks.filter(deadline__gte=now, deadline__lte=now + UPCOMING_WINDOW)
        .exclude(status=Task.Status.COMPLETED)
        .count(),
        "completed_this_week": tasks.filter(
            completed_at__gte=now - RECENT_COMPLETION_WINDOW, completed_at__lte=now
        ).count(),
        "new_projects_this_month": Project.objects.filter(
            created_at__gte=now - NEW_PROJECT_WINDOW, created_at__lte=now
        ).count(),
    }
