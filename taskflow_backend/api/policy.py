"""Authorization policy shared by every route.

The decision is a pure function of the actor, the action and the loaded
resource. Views never inspect roles or ownership directly; they ask
``can_perform`` and convert a denial with ``Decision.raise_for_denial``.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass

from rest_framework.exceptions import NotAuthenticated, PermissionDenied

from .models import File, Project, Task, User

Role = User.Role


class Action(str, enum.Enum):
    READ = "read"
    CREATE = "create"
    COMMENT = "comment"
    UPDATE_TASK = "update_task"
    UPDATE_PROJECT = "update_project"
    DELETE_PROJECT = "delete_project"
    ADD_MEMBER = "add_member"
    REMOVE_MEMBER = "remove_member"
    DELETE_TASK = "delete_task"
    DELETE_FILE = "delete_file"
    UPDATE_USER = "update_user"
    CHANGE_ROLE = "change_role"


AUTHENTICATED_ONLY = frozenset({Action.READ, Action.CREATE, Action.COMMENT, Action.UPDATE_TASK})
PROJECT_OWNER_ACTIONS = frozenset(
    {Action.UPDATE_PROJECT, Action.DELETE_PROJECT, Action.ADD_MEMBER, Action.REMOVE_MEMBER}
)
MEMBERSHIP_ACTIONS = frozenset({Action.ADD_MEMBER, Action.REMOVE_MEMBER})
MEMBERSHIP_ROLES = frozenset({Role.ADMIN, Role.TEAM_LEADER})


class DenialKind(str, enum.Enum):
    UNAUTHORIZED = "unauthorized"
    INSUFFICIENT_ROLE = "insufficient_role"
    NOT_OWNER = "not_owner"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    kind: DenialKind | None = None
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed

    def raise_for_denial(self) -> None:
        """Raise the taxonomy error for a denial; no-op when allowed."""
        if self.allowed:
            return
        if self.kind is DenialKind.UNAUTHORIZED:
            raise NotAuthenticated(self.reason)
        raise PermissionDenied(self.reason)


ALLOW = Decision(True)
UNAUTHORIZED = Decision(False, DenialKind.UNAUTHORIZED, "Unauthorized")


def _insufficient_role() -> Decision:
    return Decision(False, DenialKind.INSUFFICIENT_ROLE, "Forbidden: Insufficient permissions")


def _not_owner(reason: str) -> Decision:
    return Decision(False, DenialKind.NOT_OWNER, reason)


def is_authenticated(actor) -> bool:
    return bool(actor is not None and getattr(actor, "is_authenticated", False))


def is_admin(actor) -> bool:
    return getattr(actor, "role", None) == Role.ADMIN


# PUBLIC_INTERFACE
def role_gate(actor, action: Action) -> Decision:
    """Checks that need no resource: authentication, admin bypass and the
    coarse role gate on membership changes."""
    if not is_authenticated(actor):
        return UNAUTHORIZED
    if is_admin(actor):
        return ALLOW
    if action in MEMBERSHIP_ACTIONS and getattr(actor, "role", None) not in MEMBERSHIP_ROLES:
        return _insufficient_role()
    return ALLOW


# PUBLIC_INTERFACE
def can_perform(actor, action: Action, resource=None) -> Decision:
    """Decide whether ``actor`` may perform ``action`` on ``resource``.

    ``resource`` is a Project for project and membership actions, a Task for
    DELETE_TASK, a File for DELETE_FILE and a User for UPDATE_USER; it is
    ignored otherwise. CHANGE_ROLE is reserved to admins.
    """
    action = Action(action)
    gate = role_gate(actor, action)
    if not gate or is_admin(actor):
        return gate

    if action in AUTHENTICATED_ONLY:
        return ALLOW

    if action in PROJECT_OWNER_ACTIONS:
        if not isinstance(resource, Project):
            raise ValueError(f"{action.value} requires a Project, got {resource!r}")
        if actor.id == resource.owner_id:
            return ALLOW
        return _not_owner("Forbidden: Not project owner")

    if action is Action.DELETE_TASK:
        if not isinstance(resource, Task):
            raise ValueError(f"{action.value} requires a Task, got {resource!r}")
        if actor.id == resource.creator_id or actor.id == resource.project.owner_id:
            return ALLOW
        return _not_owner("Forbidden: Insufficient permissions to delete this task")

    if action is Action.DELETE_FILE:
        if not isinstance(resource, File):
            raise ValueError(f"{action.value} requires a File, got {resource!r}")
        if actor.id == resource.uploaded_by_id:
            return ALLOW
        if resource.project_id is not None and actor.id == resource.project.owner_id:
            return ALLOW
        return _not_owner("Forbidden: Not file owner")

    if action is Action.UPDATE_USER:
        if not isinstance(resource, User):
            raise ValueError(f"{action.value} requires a User, got {resource!r}")
        if actor.id == resource.id:
            return ALLOW
        return _not_owner("Forbidden: Cannot modify another user")

    if action is Action.CHANGE_ROLE:
        return _insufficient_role()

    raise ValueError(f"Unhandled action: {action!r}")
