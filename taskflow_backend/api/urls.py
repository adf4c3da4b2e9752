from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenRefreshView

from .views import (
    ActivityViewSet,
    AuthViewSet,
    ChatbotViewSet,
    CommentViewSet,
    DashboardViewSet,
    FeedbackViewSet,
    FileViewSet,
    ProjectViewSet,
    TaskViewSet,
    UserViewSet,
    health,
)

router = DefaultRouter()
router.register(r"auth", AuthViewSet, basename="auth")
router.register(r"users", UserViewSet, basename="users")
router.register(r"projects", ProjectViewSet, basename="projects")
router.register(r"tasks", TaskViewSet, basename="tasks")
router.register(r"comments", CommentViewSet, basename="comments")
router.register(r"files", FileViewSet, basename="files")
router.register(r"activities", ActivityViewSet, basename="activities")
router.register(r"feedback", FeedbackViewSet, basename="feedback")
router.register(r"chatbot", ChatbotViewSet, basename="chatbot")
router.register(r"dashboard", DashboardViewSet, basename="dashboard")

urlpatterns = [
    path("health/", health, name="Health"),
    path("auth/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("uploads/<str:filename>", FileViewSet.as_view({"get": "download"}), name="uploads"),
    path("", include(router.urls)),
]
