from __future__ import annotations

from django.conf import settings
from django.contrib.auth import authenticate, get_user_model
from rest_framework import ISO_8601, exceptions, serializers
from rest_framework_simplejwt.tokens import RefreshToken

from .models import Activity, Comment, File, Project, ProjectMember, Task

User = get_user_model()


class DeadlineField(serializers.DateTimeField):
    """Accepts ISO-8601 datetimes or plain dates."""

    default_error_messages = {"invalid": "Invalid date format for deadline."}

    def __init__(self, **kwargs):
        kwargs.setdefault("input_formats", [ISO_8601, "%Y-%m-%d"])
        kwargs.setdefault("required", False)
        kwargs.setdefault("allow_null", True)
        super().__init__(**kwargs)


class UserPublicSerializer(serializers.ModelSerializer):
    """A minimal user representation for expanded foreign ids."""

    class Meta:
        model = User
        fields = ["id", "username", "name", "avatar"]


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "username", "name", "email", "role", "avatar", "date_joined"]
        read_only_fields = ["id", "username", "date_joined"]


def token_pair(user) -> dict:
    """The login/register response: the user plus a fresh JWT pair."""
    refresh = RefreshToken.for_user(user)
    return {
        "user": UserSerializer(user).data,
        "refresh": str(refresh),
        "access": str(refresh.access_token),
    }


class RegisterSerializer(serializers.Serializer):
    """Registration payload. Saving creates a member; any requested role is ignored."""
    username = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=8, write_only=True)
    name = serializers.CharField(max_length=200, required=False, allow_blank=True)

    def validate_username(self, value: str) -> str:
        if User.objects.filter(username=value).exists():
            raise serializers.ValidationError("Username already exists.")
        return value

    def validate_email(self, value: str) -> str:
        if User.objects.filter(email=value).exists():
            raise serializers.ValidationError("Email already exists.")
        return value

    def create(self, validated_data):
        return User.objects.create_user(**validated_data)

    def to_representation(self, instance):
        return token_pair(instance)


class LoginSerializer(serializers.Serializer):
    """Login payload. Validation resolves the credentials to ``validated_data["user"]``."""
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        user = authenticate(
            request=self.context.get("request"),
            username=attrs["username"],
            password=attrs["password"],
        )
        if user is None:
            raise exceptions.AuthenticationFailed("Invalid credentials.")
        attrs["user"] = user
        return attrs


class ProjectSerializer(serializers.ModelSerializer):
    owner = UserPublicSerializer(read_only=True)
    deadline = DeadlineField()

    class Meta:
        model = Project
        fields = [
            "id",
            "name",
            "description",
            "status",
            "deadline",
            "owner_id",
            "owner",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["owner_id", "created_at", "updated_at"]


class ProjectMemberSerializer(serializers.ModelSerializer):
    user = UserPublicSerializer(read_only=True)

    class Meta:
        model = ProjectMember
        fields = ["id", "project_id", "user_id", "user", "created_at"]


class ProjectMemberCreateSerializer(serializers.Serializer):
    """Add a member by user id."""
    user_id = serializers.IntegerField()

    def validate_user_id(self, value: int) -> int:
        if not User.objects.filter(id=value).exists():
            raise serializers.ValidationError("User not found.")
        return value


class TaskSerializer(serializers.ModelSerializer):
    project_id = serializers.PrimaryKeyRelatedField(source="project", queryset=Project.objects.all())
    creator = UserPublicSerializer(read_only=True)
    assignee = UserPublicSerializer(read_only=True)
    assignee_id = serializers.PrimaryKeyRelatedField(
        source="assignee",
        queryset=User.objects.all(),
        required=False,
        allow_null=True,
    )
    deadline = DeadlineField()

    class Meta:
        model = Task
        fields = [
            "id",
            "project_id",
            "title",
            "description",
            "status",
            "priority",
            "creator_id",
            "creator",
            "assignee_id",
            "assignee",
            "deadline",
            "completed_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["creator_id", "completed_at", "created_at", "updated_at"]

    def validate_project_id(self, value: Project) -> Project:
        if self.instance is not None and value.id != self.instance.project_id:
            raise serializers.ValidationError("Tasks cannot be moved between projects.")
        return value

    def update(self, instance: Task, validated_data):
        status = validated_data.pop("status", None)
        if status is not None:
            instance.set_status(status)
        return super().update(instance, validated_data)


class CommentSerializer(serializers.ModelSerializer):
    task_id = serializers.PrimaryKeyRelatedField(
        source="task", queryset=Task.objects.all(), required=False, allow_null=True
    )
    project_id = serializers.PrimaryKeyRelatedField(
        source="project", queryset=Project.objects.all(), required=False, allow_null=True
    )
    user = UserPublicSerializer(read_only=True)

    class Meta:
        model = Comment
        fields = ["id", "task_id", "project_id", "user_id", "user", "content", "created_at"]
        read_only_fields = ["user_id", "created_at"]

    def validate(self, attrs):
        task = attrs.get("task")
        project = attrs.get("project")
        if self.context.get("target_task") is not None:
            return attrs
        if (task is None) == (project is None):
            raise serializers.ValidationError("Exactly one of task_id or project_id must be provided.")
        return attrs


class FileSerializer(serializers.ModelSerializer):
    uploader = serializers.SerializerMethodField()
    url = serializers.SerializerMethodField()

    class Meta:
        model = File
        fields = [
            "id",
            "name",
            "path",
            "size",
            "mime_type",
            "description",
            "uploaded_by",
            "uploader",
            "task_id",
            "project_id",
            "url",
            "created_at",
        ]
        read_only_fields = fields

    def get_uploader(self, obj: File):
        user = self.context.get("users", {}).get(obj.uploaded_by_id)
        return UserPublicSerializer(user).data if user else None

    def get_url(self, obj: File) -> str:
        return f"/api/uploads/{obj.path}"


class FileUploadSerializer(serializers.Serializer):
    """Multipart upload payload; one of taskId/projectId is required."""
    file = serializers.FileField(allow_empty_file=True)
    taskId = serializers.IntegerField(required=False, allow_null=True)
    projectId = serializers.IntegerField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_file(self, value):
        if value.size > settings.MAX_UPLOAD_SIZE:
            raise serializers.ValidationError(
                f"File exceeds the maximum upload size of {settings.MAX_UPLOAD_SIZE} bytes."
            )
        return value

    def validate(self, attrs):
        if not attrs.get("taskId") and not attrs.get("projectId"):
            raise serializers.ValidationError("Either taskId or projectId must be provided.")
        return attrs


class ActivitySerializer(serializers.ModelSerializer):
    user = serializers.SerializerMethodField()

    class Meta:
        model = Activity
        fields = ["id", "action", "description", "user_id", "user", "project_id", "task_id", "created_at"]
        read_only_fields = fields

    def get_user(self, obj: Activity):
        # Sentinel and deleted users have no row; that is expected.
        user = self.context.get("users", {}).get(obj.user_id)
        return UserPublicSerializer(user).data if user else None


class FeedbackSerializer(serializers.Serializer):
    """Anonymous feedback payload."""
    category = serializers.CharField(max_length=100)
    type = serializers.CharField(max_length=100)
    content = serializers.CharField()


class FeedbackResponseSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    date = serializers.DateTimeField()
    status = serializers.CharField()
    category = serializers.CharField()
    type = serializers.CharField()
    preview = serializers.CharField()


class ChatTurnSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=[("user", "User"), ("assistant", "Assistant")])
    content = serializers.CharField()


class ChatbotRequestSerializer(serializers.Serializer):
    """Chatbot passthrough payload."""
    message = serializers.CharField()
    history = ChatTurnSerializer(many=True, required=False)


class ChatbotResponseSerializer(serializers.Serializer):
    reply = serializers.CharField(allow_blank=True)


class DashboardStatsSerializer(serializers.Serializer):
    total_projects = serializers.IntegerField()
    in_progress_tasks = serializers.IntegerField()
    completed_tasks = serializers.IntegerField()
    team_members = serializers.IntegerField()
    upcoming_deadlines = serializers.IntegerField()
    completed_this_week = serializers.IntegerField()
    new_projects_this_month = serializers.IntegerField()
