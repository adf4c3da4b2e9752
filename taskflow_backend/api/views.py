from __future__ import annotations

import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.http import FileResponse, Http404
from django.shortcuts import get_object_or_404
from drf_yasg.utils import swagger_auto_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from . import chatbot
from .filters import ActivityFilter, CommentFilter, FileFilter, ProjectFilter, TaskFilter, UserFilter
from .models import ANONYMOUS_ACTOR_ID, Activity, Comment, File, Project, ProjectMember, Task
from .permissions import PolicyPermission
from .policy import Action, can_perform
from .serializers import (
    ActivitySerializer,
    ChatbotRequestSerializer,
    ChatbotResponseSerializer,
    CommentSerializer,
    DashboardStatsSerializer,
    FeedbackResponseSerializer,
    FeedbackSerializer,
    FileSerializer,
    FileUploadSerializer,
    LoginSerializer,
    ProjectMemberCreateSerializer,
    ProjectMemberSerializer,
    ProjectSerializer,
    RegisterSerializer,
    TaskSerializer,
    UserSerializer,
    token_pair,
)
from .services import (
    dashboard_stats,
    feedback_preview,
    files_under_project,
    get_users_by_ids,
    purge_file_content,
    record_activity,
    users_by_id,
)
from .storage import delete_stored_content, get_upload_storage, save_content

logger = logging.getLogger(__name__)
User = get_user_model()

DEFAULT_ACTIVITY_LIMIT = 20


class UploadStorageMixin:
    """Resolves the content store for views that read or delete file content.

    ``storage`` may be passed to ``as_view`` to substitute the configured
    uploads storage.
    """

    storage = None

    def get_storage(self):
        return self.storage if self.storage is not None else get_upload_storage()


@swagger_auto_schema(method="get", operation_summary="Health check", tags=["health"])
@api_view(["GET"])
@permission_classes([AllowAny])
# PUBLIC_INTERFACE
def health(request):
    """Simple health check endpoint."""
    return Response({"message": "Server is up!"})


class AuthViewSet(viewsets.ViewSet):
    """Authentication endpoints: register, login via JWT."""

    permission_classes = [AllowAny]

    @swagger_auto_schema(
        request_body=RegisterSerializer,
        responses={201: UserSerializer, 400: "Validation error"},
        operation_summary="Register user",
        tags=["auth"],
    )
    @action(detail=False, methods=["post"], url_path="register")
    # PUBLIC_INTERFACE
    def register(self, request):
        """Register a new member and return JWT tokens."""
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data, status=status.HTTP_201_CREATED)

    @swagger_auto_schema(
        request_body=LoginSerializer,
        responses={200: "Tokens", 401: "Invalid credentials"},
        operation_summary="Login user",
        tags=["auth"],
    )
    @action(detail=False, methods=["post"], url_path="login")
    # PUBLIC_INTERFACE
    def login(self, request):
        """Login with username/password and return JWT tokens."""
        serializer = LoginSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        return Response(token_pair(serializer.validated_data["user"]))


class UserViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    """Users directory. Profiles are edited by their owner; roles only by admins."""

    queryset = User.objects.filter(is_active=True).order_by("id")
    serializer_class = UserSerializer
    permission_classes = [PolicyPermission]
    policy_actions = {"update": Action.UPDATE_USER, "partial_update": Action.UPDATE_USER}
    filterset_class = UserFilter
    ordering_fields = ["id", "username", "name"]

    def update(self, request, *args, **kwargs):
        if "role" in request.data:
            can_perform(request.user, Action.CHANGE_ROLE).raise_for_denial()
        kwargs["partial"] = True
        return super().update(request, *args, **kwargs)

    @swagger_auto_schema(operation_summary="Current user", tags=["users"])
    @action(detail=False, methods=["get"], url_path="me")
    # PUBLIC_INTERFACE
    def me(self, request):
        """Return the authenticated user's profile."""
        return Response(UserSerializer(request.user).data)


class ProjectViewSet(UploadStorageMixin, viewsets.ModelViewSet):
    """Projects CRUD. Mutations and membership changes are owner/admin only."""

    queryset = Project.objects.select_related("owner")
    serializer_class = ProjectSerializer
    permission_classes = [PolicyPermission]
    policy_actions = {
        "update": Action.UPDATE_PROJECT,
        "partial_update": Action.UPDATE_PROJECT,
        "destroy": Action.DELETE_PROJECT,
        "add_member": Action.ADD_MEMBER,
        "remove_member": Action.REMOVE_MEMBER,
    }
    filterset_class = ProjectFilter
    search_fields = ["name", "description"]
    ordering_fields = ["created_at", "name", "deadline"]
    ordering = ["-created_at"]

    def update(self, request, *args, **kwargs):
        kwargs["partial"] = True
        return super().update(request, *args, **kwargs)

    def perform_create(self, serializer):
        with transaction.atomic():
            project = serializer.save(owner=self.request.user)
            record_activity(
                action=Activity.Action.CREATE_PROJECT,
                description=f"created project: {project.name}",
                actor_id=self.request.user.id,
                project_id=project.id,
            )
        logger.info("Project %s created by user %s", project.id, self.request.user.id)

    def perform_update(self, serializer):
        name = serializer.instance.name
        with transaction.atomic():
            project = serializer.save()
            record_activity(
                action=Activity.Action.UPDATE_PROJECT,
                description=f"updated project: {name}",
                actor_id=self.request.user.id,
                project_id=project.id,
            )

    def perform_destroy(self, instance):
        project_id, name = instance.id, instance.name
        purge_file_content(files_under_project(instance), self.get_storage())
        with transaction.atomic():
            instance.delete()
            record_activity(
                action=Activity.Action.DELETE_PROJECT,
                description=f"deleted project: {name}",
                actor_id=self.request.user.id,
                project_id=project_id,
            )

    @swagger_auto_schema(responses={200: UserSerializer(many=True)}, operation_summary="List project members", tags=["projects"])
    @action(detail=True, methods=["get"], url_path="members")
    # PUBLIC_INTERFACE
    def members(self, request, pk=None):
        """List the users of a project, owner included."""
        project = self.get_object()
        users = get_users_by_ids(project.member_ids())
        return Response(UserSerializer(users, many=True).data)

    @swagger_auto_schema(
        request_body=ProjectMemberCreateSerializer,
        responses={201: ProjectMemberSerializer},
        operation_summary="Add project member",
        tags=["projects"],
    )
    @members.mapping.post
    # PUBLIC_INTERFACE
    def add_member(self, request, pk=None):
        """Add a user to the project (admin, or team leader owning the project)."""
        project = self.get_object()
        serializer = ProjectMemberCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = User.objects.get(id=serializer.validated_data["user_id"])
        if project.has_member(user.id):
            raise ValidationError({"detail": "User is already a member of this project."})

        try:
            with transaction.atomic():
                membership = ProjectMember.objects.create(project=project, user=user)
                record_activity(
                    action=Activity.Action.ADD_MEMBER,
                    description=f"added {user.display_name} to project: {project.name}",
                    actor_id=request.user.id,
                    project_id=project.id,
                )
        except IntegrityError:
            raise ValidationError({"detail": "User is already a member of this project."})

        return Response(ProjectMemberSerializer(membership).data, status=status.HTTP_201_CREATED)

    @swagger_auto_schema(operation_summary="Remove project member", tags=["projects"])
    @action(detail=True, methods=["delete"], url_path=r"members/(?P<user_id>[0-9]+)")
    # PUBLIC_INTERFACE
    def remove_member(self, request, pk=None, user_id=None):
        """Remove a user from the project. The owner cannot be removed."""
        project = self.get_object()
        user_id = int(user_id)
        if user_id == project.owner_id:
            raise ValidationError({"detail": "The project owner cannot be removed."})

        membership = ProjectMember.objects.filter(project=project, user_id=user_id).first()
        if membership is None:
            raise NotFound("User is not a member of this project.")

        removed = get_users_by_ids([user_id])
        removed_name = removed[0].display_name if removed else "a user"
        with transaction.atomic():
            membership.delete()
            record_activity(
                action=Activity.Action.REMOVE_MEMBER,
                description=f"removed {removed_name} from project: {project.name}",
                actor_id=request.user.id,
                project_id=project.id,
            )
        return Response(status=status.HTTP_204_NO_CONTENT)


class TaskViewSet(UploadStorageMixin, viewsets.ModelViewSet):
    """Tasks CRUD. Listing defaults to the caller's assigned tasks."""

    queryset = Task.objects.select_related("project", "creator", "assignee")
    serializer_class = TaskSerializer
    permission_classes = [PolicyPermission]
    policy_actions = {
        "update": Action.UPDATE_TASK,
        "partial_update": Action.UPDATE_TASK,
        "destroy": Action.DELETE_TASK,
        "add_comment": Action.COMMENT,
    }
    filterset_class = TaskFilter
    search_fields = ["title", "description"]
    ordering_fields = ["created_at", "deadline", "priority", "status"]
    ordering = ["-created_at"]

    def get_queryset(self):
        queryset = super().get_queryset()
        if getattr(self, "swagger_fake_view", False):
            return queryset.none()
        params = self.request.query_params
        if self.action == "list" and not params.get("projectId") and not params.get("assigneeId"):
            queryset = queryset.filter(assignee=self.request.user)
        return queryset

    def update(self, request, *args, **kwargs):
        kwargs["partial"] = True
        return super().update(request, *args, **kwargs)

    def perform_create(self, serializer):
        with transaction.atomic():
            task = serializer.save(creator=self.request.user)
            record_activity(
                action=Activity.Action.CREATE_TASK,
                description=f"created task: {task.title}",
                actor_id=self.request.user.id,
                project_id=task.project_id,
                task_id=task.id,
            )
        logger.info("Task %s created in project %s", task.id, task.project_id)

    def perform_update(self, serializer):
        title = serializer.instance.title
        with transaction.atomic():
            task = serializer.save()
            record_activity(
                action=Activity.Action.UPDATE_TASK,
                description=f"updated task: {title}",
                actor_id=self.request.user.id,
                project_id=task.project_id,
                task_id=task.id,
            )

    def perform_destroy(self, instance):
        task_id, project_id, title = instance.id, instance.project_id, instance.title
        purge_file_content(instance.files.all(), self.get_storage())
        with transaction.atomic():
            instance.delete()
            record_activity(
                action=Activity.Action.DELETE_TASK,
                description=f"deleted task: {title}",
                actor_id=self.request.user.id,
                project_id=project_id,
                task_id=task_id,
            )

    @swagger_auto_schema(responses={200: CommentSerializer(many=True)}, operation_summary="List task comments", tags=["comments"])
    @action(detail=True, methods=["get"], url_path="comments")
    # PUBLIC_INTERFACE
    def comments(self, request, pk=None):
        """List comments for a task."""
        task = self.get_object()
        comments = Comment.objects.filter(task=task).select_related("user").order_by("created_at")
        return Response(CommentSerializer(comments, many=True).data)

    @swagger_auto_schema(
        request_body=CommentSerializer,
        responses={201: CommentSerializer},
        operation_summary="Add task comment",
        tags=["comments"],
    )
    @comments.mapping.post
    # PUBLIC_INTERFACE
    def add_comment(self, request, pk=None):
        """Create a comment for a task."""
        task = self.get_object()
        serializer = CommentSerializer(data=request.data, context={"target_task": task})
        serializer.is_valid(raise_exception=True)

        with transaction.atomic():
            comment = serializer.save(task=task, project=None, user=request.user)
            record_activity(
                action=Activity.Action.COMMENT_TASK,
                description=f"commented on task: {task.title}",
                actor_id=request.user.id,
                project_id=task.project_id,
                task_id=task.id,
            )
        return Response(CommentSerializer(comment).data, status=status.HTTP_201_CREATED)


class CommentViewSet(mixins.ListModelMixin, mixins.CreateModelMixin, viewsets.GenericViewSet):
    """Comments on tasks or directly on projects."""

    queryset = Comment.objects.select_related("user", "task", "project")
    serializer_class = CommentSerializer
    permission_classes = [PolicyPermission]
    policy_actions = {"create": Action.COMMENT}
    filterset_class = CommentFilter
    ordering_fields = ["created_at"]
    ordering = ["created_at"]

    def perform_create(self, serializer):
        with transaction.atomic():
            comment = serializer.save(user=self.request.user)
            if comment.task is not None:
                record_activity(
                    action=Activity.Action.COMMENT_TASK,
                    description=f"commented on task: {comment.task.title}",
                    actor_id=self.request.user.id,
                    project_id=comment.task.project_id,
                    task_id=comment.task_id,
                )
            else:
                record_activity(
                    action=Activity.Action.COMMENT_PROJECT,
                    description=f"commented on project: {comment.project.name}",
                    actor_id=self.request.user.id,
                    project_id=comment.project_id,
                )


class FileViewSet(
    UploadStorageMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """File attachments. Content goes to the uploads storage, metadata to the database."""

    queryset = File.objects.select_related("project", "task")
    serializer_class = FileSerializer
    permission_classes = [PolicyPermission]
    policy_actions = {"destroy": Action.DELETE_FILE, "upload": Action.CREATE}
    filterset_class = FileFilter
    ordering_fields = ["created_at", "name", "size"]
    ordering = ["-created_at"]

    def get_queryset(self):
        queryset = super().get_queryset()
        if getattr(self, "swagger_fake_view", False):
            return queryset.none()
        params = self.request.query_params
        if self.action == "list" and not params.get("projectId") and not params.get("taskId"):
            projects = Project.objects.for_user(self.request.user)
            queryset = queryset.filter(Q(project__in=projects) | Q(task__project__in=projects)).distinct()
        return queryset

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context.setdefault("users", {})
        return context

    def list(self, request, *args, **kwargs):
        files = list(self.filter_queryset(self.get_queryset()))
        context = self.get_serializer_context()
        context["users"] = users_by_id(f.uploaded_by_id for f in files)
        return Response(FileSerializer(files, many=True, context=context).data)

    def retrieve(self, request, *args, **kwargs):
        file = self.get_object()
        context = self.get_serializer_context()
        context["users"] = users_by_id([file.uploaded_by_id])
        return Response(FileSerializer(file, context=context).data)

    def perform_destroy(self, instance):
        file_id, name = instance.id, instance.name
        project_id = instance.project_id or (instance.task.project_id if instance.task else None)
        task_id = instance.task_id

        delete_stored_content(self.get_storage(), instance.path)
        with transaction.atomic():
            instance.delete()
            record_activity(
                action=Activity.Action.DELETE_FILE,
                description=f"deleted file: {name}",
                actor_id=self.request.user.id,
                project_id=project_id,
                task_id=task_id,
            )
        logger.info("File %s deleted by user %s", file_id, self.request.user.id)

    @swagger_auto_schema(
        request_body=FileUploadSerializer,
        responses={201: FileSerializer, 400: "Validation error", 404: "Target not found"},
        operation_summary="Upload file",
        tags=["files"],
    )
    @action(detail=False, methods=["post"], url_path="upload", parser_classes=[MultiPartParser, FormParser])
    # PUBLIC_INTERFACE
    def upload(self, request):
        """Store an uploaded file and attach it to a task and/or project."""
        serializer = FileUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        task = project = None
        if data.get("taskId"):
            task = Task.objects.filter(id=data["taskId"]).first()
            if task is None:
                raise NotFound("Task not found")
        if data.get("projectId"):
            project = Project.objects.filter(id=data["projectId"]).first()
            if project is None:
                raise NotFound("Project not found")

        uploaded = data["file"]
        stored_name = save_content(self.get_storage(), uploaded)

        with transaction.atomic():
            file = File.objects.create(
                name=uploaded.name,
                path=stored_name,
                size=uploaded.size,
                mime_type=getattr(uploaded, "content_type", "") or "",
                description=data.get("description", ""),
                uploaded_by=request.user,
                task=task,
                project=project,
            )
            if task is not None:
                record_activity(
                    action=Activity.Action.UPLOAD_FILE,
                    description=f"uploaded file to task: {task.title}",
                    actor_id=request.user.id,
                    project_id=task.project_id,
                    task_id=task.id,
                )
            else:
                record_activity(
                    action=Activity.Action.UPLOAD_FILE,
                    description=f"uploaded file to project: {project.name}",
                    actor_id=request.user.id,
                    project_id=project.id,
                )

        context = self.get_serializer_context()
        context["users"] = {request.user.id: request.user}
        return Response(FileSerializer(file, context=context).data, status=status.HTTP_201_CREATED)

    @swagger_auto_schema(operation_summary="Download uploaded content", tags=["files"])
    # PUBLIC_INTERFACE
    def download(self, request, filename=None):
        """Stream stored content for a known file record. Routed as ``uploads/<filename>``."""
        record = get_object_or_404(File, path=filename)
        storage = self.get_storage()
        if not storage.exists(record.path):
            raise Http404("File content not found")
        return FileResponse(
            storage.open(record.path, "rb"),
            filename=record.name,
            content_type=record.mime_type or None,
        )


class ActivityViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """Read-only activity feed, newest first."""

    queryset = Activity.objects.all()
    serializer_class = ActivitySerializer
    permission_classes = [PolicyPermission]
    filterset_class = ActivityFilter
    ordering = ["-created_at", "-id"]

    def get_limit(self) -> int:
        raw = self.request.query_params.get("limit")
        if raw in (None, ""):
            return DEFAULT_ACTIVITY_LIMIT
        try:
            limit = int(raw)
        except (TypeError, ValueError):
            raise ValidationError({"limit": "A positive integer is required."})
        if limit < 1:
            raise ValidationError({"limit": "A positive integer is required."})
        return limit

    def list(self, request, *args, **kwargs):
        limit = self.get_limit()
        activities = self.filter_queryset(self.get_queryset()).order_by("-created_at", "-id")
        # Project and user feeds are complete; only the recent feed is capped.
        params = request.query_params
        if not params.get("projectId") and not params.get("userId"):
            activities = activities[:limit]
        activities = list(activities)
        context = self.get_serializer_context()
        context["users"] = users_by_id(a.user_id for a in activities)
        return Response(ActivitySerializer(activities, many=True, context=context).data)


class FeedbackViewSet(viewsets.ViewSet):
    """Anonymous feedback, stored as an activity with the anonymous actor id."""

    permission_classes = [PolicyPermission]

    @swagger_auto_schema(
        request_body=FeedbackSerializer,
        responses={201: FeedbackResponseSerializer},
        operation_summary="Submit anonymous feedback",
        tags=["feedback"],
    )
    # PUBLIC_INTERFACE
    def create(self, request):
        """Record feedback without linking it to the submitting user."""
        serializer = FeedbackSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        category = serializer.validated_data["category"]
        kind = serializer.validated_data["type"]
        preview = feedback_preview(serializer.validated_data["content"])

        feedback = record_activity(
            action=Activity.Action.ANONYMOUS_FEEDBACK,
            description=f"Feedback - {category}/{kind}: {preview}",
            actor_id=ANONYMOUS_ACTOR_ID,
        )
        return Response(
            {
                "id": feedback.id,
                "date": feedback.created_at,
                "status": "pending",
                "category": category,
                "type": kind,
                "preview": preview,
            },
            status=status.HTTP_201_CREATED,
        )


class ChatbotViewSet(viewsets.ViewSet):
    """Passthrough to the chat model collaborator."""

    permission_classes = [PolicyPermission]
    policy_actions = {"create": Action.READ}

    @swagger_auto_schema(
        request_body=ChatbotRequestSerializer,
        responses={200: ChatbotResponseSerializer},
        operation_summary="Ask the assistant",
        tags=["chatbot"],
    )
    # PUBLIC_INTERFACE
    def create(self, request):
        """Forward a message to the chatbot and return its reply."""
        serializer = ChatbotRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reply = chatbot.ask(
            serializer.validated_data["message"],
            serializer.validated_data.get("history"),
        )
        return Response({"reply": reply})


class DashboardViewSet(viewsets.ViewSet):
    """Derived counts, computed on every request."""

    permission_classes = [PolicyPermission]

    @swagger_auto_schema(responses={200: DashboardStatsSerializer}, operation_summary="Dashboard stats", tags=["dashboard"])
    @action(detail=False, methods=["get"], url_path="stats")
    # PUBLIC_INTERFACE
    def stats(self, request):
        """Project and task counts for the dashboard."""
        return Response(DashboardStatsSerializer(dashboard_stats()).data)
