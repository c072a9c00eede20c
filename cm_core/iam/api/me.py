# cm_core/iam/api/me.py

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from cm_core.common.permissions import primary_role, user_roles
from cm_core.iam.api.schema_serializers import MeResponseSerializer


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: MeResponseSerializer}, tags=["IAM"])
    def get(self, request):
        """
        Current user plus the role the workflow will treat them as.
        """
        user = request.user
        return Response(
            {
                "user": {
                    "id": user.id,
                    "username": getattr(user, "username", None),
                    "email": getattr(user, "email", None),
                    "is_superuser": bool(getattr(user, "is_superuser", False)),
                    "is_active": bool(user.is_active),
                },
                "role": primary_role(user),
                "roles": sorted(user_roles(user)),
            },
            status=status.HTTP_200_OK,
        )
