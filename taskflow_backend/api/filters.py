from __future__ import annotations

import django_filters
from django.db.models import Q

from .models import Activity, Comment, File, Project, Task, User


class NumberInFilter(django_filters.BaseInFilter, django_filters.NumberFilter):
    pass


class UserFilter(django_filters.FilterSet):
    role = django_filters.ChoiceFilter(choices=User.Role.choices)
    ids = NumberInFilter(field_name="id", lookup_expr="in")
    q = django_filters.CharFilter(method="filter_q")

    def filter_q(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(Q(username__icontains=value) | Q(name__icontains=value))

    class Meta:
        model = User
        fields = ["role", "ids", "q"]


class ProjectFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Project.Status.choices)
    ownerId = django_filters.NumberFilter(field_name="owner_id")
    q = django_filters.CharFilter(method="filter_q")

    def filter_q(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(Q(name__icontains=value) | Q(description__icontains=value))

    class Meta:
        model = Project
        fields = ["status", "ownerId", "q"]


class TaskFilter(django_filters.FilterSet):
    projectId = django_filters.NumberFilter(field_name="project_id")
    assigneeId = django_filters.NumberFilter(field_name="assignee_id")
    status = django_filters.ChoiceFilter(choices=Task.Status.choices)
    priority = django_filters.ChoiceFilter(choices=Task.Priority.choices)
    due_before = django_filters.IsoDateTimeFilter(field_name="deadline", lookup_expr="lte")
    due_after = django_filters.IsoDateTimeFilter(field_name="deadline", lookup_expr="gte")
    q = django_filters.CharFilter(method="filter_q")

    def filter_q(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(Q(title__icontains=value) | Q(description__icontains=value))

    class Meta:
        model = Task
        fields = ["projectId", "assigneeId", "status", "priority", "due_before", "due_after", "q"]


class CommentFilter(django_filters.FilterSet):
    taskId = django_filters.NumberFilter(field_name="task_id")
    projectId = django_filters.NumberFilter(field_name="project_id")

    class Meta:
        model = Comment
        fields = ["taskId", "projectId"]


class FileFilter(django_filters.FilterSet):
    projectId = django_filters.NumberFilter(field_name="project_id")
    taskId = django_filters.NumberFilter(field_name="task_id")

    class Meta:
        model = File
        fields = ["projectId", "taskId"]


class ActivityFilter(django_filters.FilterSet):
    projectId = django_filters.NumberFilter(field_name="project_id")
    userId = django_filters.NumberFilter(field_name="user_id")
    taskId = django_filters.NumberFilter(field_name="task_id")
    action = django_filters.ChoiceFilter(choices=Activity.Action.choices)

    class Meta:
        model = Activity
        fields = ["projectId", "userId", "taskId", "action"]
