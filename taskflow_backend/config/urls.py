"""
URL configuration for config project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""
from django.contrib import admin
from django.urls import include, path, re_path
from drf_yasg import openapi
from drf_yasg.views import get_schema_view
from rest_framework import permissions

API_INFO = openapi.Info(
    title="TaskFlow API",
    default_version="v1",
    description=(
        "TaskFlow is a collaborative project and task manager with role-based access.\n\n"
        "Auth: Use JWT. Obtain tokens via /api/auth/login/ or /api/auth/register/ and pass:\n"
        "Authorization: Bearer <access_token>"
    ),
)

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", include("api.urls")),
]

schema_view = get_schema_view(
    API_INFO,
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns += [
    re_path(r"^docs/$", schema_view.with_ui("swagger", cache_timeout=0), name="schema-swagger-ui"),
    re_path(r"^redoc/$", schema_view.with_ui("redoc", cache_timeout=0), name="schema-redoc"),
    re_path(r"^swagger\.json$", schema_view.without_ui(cache_timeout=0), name="schema-json"),
]
