from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import Activity, Comment, File, Project, ProjectMember, Task, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("id", "username", "name", "email", "role", "is_active")
    list_filter = ("role", "is_active", "is_staff")
    search_fields = ("username", "name", "email")
    fieldsets = BaseUserAdmin.fieldsets + (("TaskFlow", {"fields": ("name", "role", "avatar")}),)


class ProjectMemberInline(admin.TabularInline):
    model = ProjectMember
    extra = 0
    raw_id_fields = ("user",)


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "status", "owner", "deadline", "created_at")
    search_fields = ("name", "description", "owner__username")
    list_filter = ("status", "created_at")
    inlines = [ProjectMemberInline]


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ("id", "project", "title", "status", "priority", "assignee", "deadline", "completed_at")
    search_fields = ("title", "description", "project__name")
    list_filter = ("status", "priority", "created_at")
    readonly_fields = ("completed_at",)
    ordering = ("-created_at",)


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ("id", "task", "project", "user", "created_at")
    search_fields = ("content", "task__title", "project__name", "user__username")
    list_filter = ("created_at",)


@admin.register(File)
class FileAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "size", "mime_type", "uploaded_by", "task", "project", "created_at")
    search_fields = ("name", "description")
    list_filter = ("mime_type", "created_at")


@admin.register(Activity)
class ActivityAdmin(admin.ModelAdmin):
    list_display = ("id", "action", "user_id", "project_id", "task_id", "created_at")
    list_filter = ("action", "created_at")
    search_fields = ("description",)
    ordering = ("-created_at",)

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
