# cm_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from cm_core.cases.api.views import CaseViewSet
from cm_core.iam.api.auth import LoginView, LogoutView, RefreshView
from cm_core.iam.api.me import MeView
from cm_core.notifications.api.views import NotificationViewSet

router = DefaultRouter()
router.register(r"cases", CaseViewSet, basename="cases")
router.register(r"notifications", NotificationViewSet, basename="notifications")

urlpatterns = [
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/refresh/", RefreshView.as_view(), name="refresh"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path("me/", MeView.as_view(), name="me"),

    # Router URLs last so explicit paths win
    *router.urls,
]
