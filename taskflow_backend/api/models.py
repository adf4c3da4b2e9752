from __future__ import annotations

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import Q
from django.utils import timezone

# Activity.user_id used for anonymized submissions; never matches a real user.
ANONYMOUS_ACTOR_ID = -1


class TimeStampedModel(models.Model):
    """Abstract base model that adds created/updated timestamps."""
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    class Meta:
        abstract = True


class User(AbstractUser):
    """An account with one of three fixed roles."""
    class Role(models.TextChoices):
        ADMIN = "admin", "Admin"
        TEAM_LEADER = "team_leader", "Team leader"
        MEMBER = "member", "Member"

    name = models.CharField(max_length=200, blank=True)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.MEMBER)
    avatar = models.CharField(max_length=500, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["role"], name="api_user_role_idx"),
        ]

    def __str__(self) -> str:
        return f"User({self.id}): {self.username}"

    @property
    def display_name(self) -> str:
        return self.name or self.username

    @property
    def is_admin(self) -> bool:
        return self.role == self.Role.ADMIN


class ProjectQuerySet(models.QuerySet):
    def for_user(self, user):
        """Projects the user owns or has a membership row in."""
        return self.filter(Q(owner=user) | Q(memberships__user=user)).distinct()


class Project(TimeStampedModel):
    """A project owned by one user and shared with its members."""
    class Status(models.TextChoices):
        PLANNING = "planning", "Planning"
        IN_PROGRESS = "in_progress", "In Progress"
        ON_HOLD = "on_hold", "On Hold"
        COMPLETED = "completed", "Completed"

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PLANNING)
    deadline = models.DateTimeField(null=True, blank=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="projects_owned",
    )

    objects = ProjectQuerySet.as_manager()

    class Meta:
        indexes = [
            models.Index(fields=["owner"], name="api_project_owner_idx"),
            models.Index(fields=["status"], name="api_project_status_idx"),
            models.Index(fields=["created_at"], name="api_project_created_idx"),
        ]

    def __str__(self) -> str:
        return f"Project({self.id}): {self.name}"

    def member_ids(self) -> list[int]:
        """Ids of all members, the owner included, each once."""
        ids = list(self.memberships.values_list("user_id", flat=True))
        if self.owner_id not in ids:
            ids.append(self.owner_id)
        return ids

    def has_member(self, user_id: int) -> bool:
        return user_id == self.owner_id or self.memberships.filter(user_id=user_id).exists()


class ProjectMember(TimeStampedModel):
    """A user's membership in a project. The owner needs no row."""
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name="memberships")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="project_memberships",
    )

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["project", "user"], name="unique_project_member"),
        ]
        indexes = [
            models.Index(fields=["user"], name="api_project_member_user_idx"),
        ]

    def __str__(self) -> str:
        return f"ProjectMember(project={self.project_id}, user={self.user_id})"


class Task(TimeStampedModel):
    """A work item within a project."""
    class Status(models.TextChoices):
        TODO = "todo", "To Do"
        IN_PROGRESS = "in_progress", "In Progress"
        REVIEW = "review", "Review"
        COMPLETED = "completed", "Completed"

    class Priority(models.TextChoices):
        LOW = "low", "Low"
        MEDIUM = "medium", "Medium"
        HIGH = "high", "High"

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name="tasks")
    title = models.CharField(max_length=250)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.TODO)
    priority = models.CharField(max_length=20, choices=Priority.choices, default=Priority.MEDIUM)

    creator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="tasks_created",
    )
    assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="tasks_assigned",
    )

    deadline = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["project", "status"], name="api_task_project_status_idx"),
            models.Index(fields=["assignee"], name="api_task_assignee_idx"),
            models.Index(fields=["deadline"], name="api_task_deadline_idx"),
            models.Index(fields=["completed_at"], name="api_task_completed_idx"),
            models.Index(fields=["created_at"], name="api_task_created_idx"),
        ]

    def __str__(self) -> str:
        return f"Task({self.id}): {self.title}"

    def set_status(self, status: str) -> None:
        """Change status, stamping completed_at only on entry into completed.

        Leaving completed keeps the previous completed_at as a record of the
        most recent completion.
        """
        if status == self.Status.COMPLETED and self.status != self.Status.COMPLETED:
            self.completed_at = timezone.now()
        self.status = status


class Comment(TimeStampedModel):
    """A comment on a task or directly on a project."""
    task = models.ForeignKey(Task, on_delete=models.CASCADE, null=True, blank=True, related_name="comments")
    project = models.ForeignKey(
        Project, on_delete=models.CASCADE, null=True, blank=True, related_name="comments"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="comments_authored",
    )
    content = models.TextField()

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(task__isnull=False, project__isnull=True) | Q(task__isnull=True, project__isnull=False),
                name="comment_has_one_target",
            ),
        ]
        indexes = [
            models.Index(fields=["task", "created_at"], name="api_comment_task_idx"),
            models.Index(fields=["project", "created_at"], name="api_comment_project_idx"),
        ]

    def __str__(self) -> str:
        target = f"Task({self.task_id})" if self.task_id else f"Project({self.project_id})"
        return f"Comment({self.id}) on {target}"


class File(TimeStampedModel):
    """Metadata for uploaded content kept in the uploads storage."""
    name = models.CharField(max_length=255)
    path = models.CharField(max_length=500)
    size = models.PositiveBigIntegerField(default=0)
    mime_type = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="files_uploaded",
    )
    task = models.ForeignKey(Task, on_delete=models.CASCADE, null=True, blank=True, related_name="files")
    project = models.ForeignKey(Project, on_delete=models.CASCADE, null=True, blank=True, related_name="files")

    class Meta:
        indexes = [
            models.Index(fields=["project", "created_at"], name="api_file_project_idx"),
            models.Index(fields=["task", "created_at"], name="api_file_task_idx"),
            models.Index(fields=["uploaded_by"], name="api_file_uploader_idx"),
        ]

    def __str__(self) -> str:
        return f"File({self.id}): {self.name}"


class Activity(models.Model):
    """Append-only audit trail entry.

    References are plain integers so entries outlive the users, projects and
    tasks they mention; user_id may be ANONYMOUS_ACTOR_ID.
    """
    class Action(models.TextChoices):
        CREATE_PROJECT = "create_project", "Project created"
        UPDATE_PROJECT = "update_project", "Project updated"
        DELETE_PROJECT = "delete_project", "Project deleted"
        ADD_MEMBER = "add_member", "Member added"
        REMOVE_MEMBER = "remove_member", "Member removed"
        CREATE_TASK = "create_task", "Task created"
        UPDATE_TASK = "update_task", "Task updated"
        DELETE_TASK = "delete_task", "Task deleted"
        COMMENT_TASK = "comment_task", "Task commented"
        COMMENT_PROJECT = "comment_project", "Project commented"
        UPLOAD_FILE = "upload_file", "File uploaded"
        DELETE_FILE = "delete_file", "File deleted"
        ANONYMOUS_FEEDBACK = "anonymous_feedback", "Anonymous feedback"

    action = models.CharField(max_length=50, choices=Action.choices)
    description = models.TextField(blank=True)
    user_id = models.BigIntegerField(db_index=True)
    project_id = models.BigIntegerField(null=True, blank=True)
    task_id = models.BigIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        verbose_name_plural = "activities"
        indexes = [
            models.Index(fields=["project_id", "created_at"], name="api_activit_project_idx"),
            models.Index(fields=["task_id", "created_at"], name="api_activit_task_idx"),
            models.Index(fields=["action", "created_at"], name="api_activit_action_idx"),
        ]

    def __str__(self) -> str:
        return f"Activity({self.id}): {self.action}"

    @property
    def is_anonymous(self) -> bool:
        return self.user_id == ANONYMOUS_ACTOR_ID
