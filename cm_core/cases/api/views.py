# cm_core/cases/api/views.py
from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError as DRFValidationError
from rest_framework.response import Response

from cm_core.audit.api.serializers import CaseLogSerializer
from cm_core.cases.api.serializers import (
    ActionCommentSerializer,
    AssignRequestSerializer,
    CaseCreateSerializer,
    CaseSerializer,
    CaseStatsSerializer,
    CaseUpdateSerializer,
    CaseworkerLoadSerializer,
    NoteRequestSerializer,
    TransitionRequestSerializer,
)
from cm_core.cases.engine import WorkflowEngine
from cm_core.cases.exceptions import WorkflowError
from cm_core.cases.models import Case, CaseAction
from cm_core.cases.permissions import CasePermission
from cm_core.cases.selectors import CaseSelector
from cm_core.cases.services import CaseService
from cm_core.common.api.exceptions import WorkflowAPIError
from cm_core.common.api.pagination import paginate
from cm_core.common.permissions import primary_role


def _api_error(exc: WorkflowError) -> WorkflowAPIError:
    return WorkflowAPIError(
        http_status=exc.http_status,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


LIST_PARAMETERS = [
    OpenApiParameter("status", OpenApiTypes.STR, OpenApiParameter.QUERY, description="One or more statuses, comma separated."),
    OpenApiParameter("priority", OpenApiTypes.STR, OpenApiParameter.QUERY),
    OpenApiParameter("assigned_to_id", OpenApiTypes.INT, OpenApiParameter.QUERY),
    OpenApiParameter("created_by_id", OpenApiTypes.INT, OpenApiParameter.QUERY),
    OpenApiParameter("mine", OpenApiTypes.BOOL, OpenApiParameter.QUERY, description="Only cases assigned to me."),
    OpenApiParameter("created_by_me", OpenApiTypes.BOOL, OpenApiParameter.QUERY),
    OpenApiParameter("watching", OpenApiTypes.BOOL, OpenApiParameter.QUERY),
    OpenApiParameter("search", OpenApiTypes.STR, OpenApiParameter.QUERY, description="Matches title or description."),
    OpenApiParameter("ordering", OpenApiTypes.STR, OpenApiParameter.QUERY),
]


class CaseViewSet(viewsets.ViewSet):
    """
    Thin API layer:
    - request validation (serializers)
    - selectors for reads, CaseService / WorkflowEngine for writes
    - domain errors -> error envelope
    """

    permission_classes = [CasePermission]
    serializer_class = CaseSerializer
    queryset = Case.objects.none()

    def _get_object(self, pk) -> Case:
        user_id, role = self._actor(self.request)
        try:
            return CaseSelector.get_visible_case(case_id=pk, user_id=user_id, role=role)
        except CaseSelector.NotFound:
            raise NotFound("Case not found.")
        except CaseSelector.Forbidden:
            raise PermissionDenied("You do not have access to this case.")

    def _actor(self, request) -> tuple[int, str | None]:
        return request.user.id, primary_role(request.user)

    def _transition(self, request, pk, action_name: str, *, params=None, comment: str = ""):
        actor_id, actor_role = self._actor(request)
        try:
            case = WorkflowEngine().transition(
                case_id=pk,
                action=action_name,
                actor_id=actor_id,
                actor_role=actor_role,
                params=params,
                comment=comment,
            )
        except WorkflowError as e:
            raise _api_error(e)

        return Response(CaseSerializer(case).data, status=status.HTTP_200_OK)

    # ----------------------------
    # Reads
    # ----------------------------
    @extend_schema(tags=["Cases"], parameters=LIST_PARAMETERS, responses={200: CaseSerializer(many=True)})
    def list(self, request):
        try:
            qs = CaseSelector.list_cases(
                user_id=request.user.id,
                params=request.query_params,
                role=primary_role(request.user),
            )
        except DjangoValidationError as e:
            raise DRFValidationError({"detail": e.messages[0] if e.messages else str(e)})

        return paginate(request, qs, CaseSerializer)

    @extend_schema(tags=["Cases"], responses={200: CaseSerializer})
    def retrieve(self, request, pk=None):
        return Response(CaseSerializer(self._get_object(pk)).data)

    @extend_schema(tags=["Cases"], responses={200: CaseLogSerializer(many=True)})
    @action(detail=True, methods=["get"])
    def logs(self, request, pk=None):
        self._get_object(pk)
        entries = CaseSelector.list_logs(case_id=pk)
        return Response(CaseLogSerializer(entries, many=True).data)

    @extend_schema(tags=["Cases"], responses={200: CaseStatsSerializer})
    @action(detail=False, methods=["get"])
    def stats(self, request):
        return Response(CaseStatsSerializer(CaseSelector.stats()).data)

    @extend_schema(tags=["Cases"], responses={200: CaseworkerLoadSerializer(many=True)})
    @action(detail=False, methods=["get"], url_path="available-caseworkers")
    def available_caseworkers(self, request):
        rows = CaseSelector.available_caseworkers()
        return Response(CaseworkerLoadSerializer(rows, many=True).data)

    # ----------------------------
    # CRUD (non-workflow)
    # ----------------------------
    @extend_schema(tags=["Cases"], request=CaseCreateSerializer, responses={201: CaseSerializer})
    def create(self, request):
        ser = CaseCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            case = CaseService.create_case(created_by_id=request.user.id, **ser.validated_data)
        except WorkflowError as e:
            raise _api_error(e)

        return Response(CaseSerializer(self._get_object(case.id)).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Cases"], request=CaseUpdateSerializer, responses={200: CaseSerializer})
    def partial_update(self, request, pk=None):
        ser = CaseUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        actor_id, actor_role = self._actor(request)
        try:
            case = CaseService.update_case(
                case_id=pk,
                actor_id=actor_id,
                actor_role=actor_role,
                changes=dict(ser.validated_data),
            )
        except WorkflowError as e:
            raise _api_error(e)

        return Response(CaseSerializer(self._get_object(case.id)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Cases"], responses={204: None})
    def destroy(self, request, pk=None):
        actor_id, actor_role = self._actor(request)
        self._get_object(pk)
        try:
            CaseService.delete_case(case_id=pk, actor_id=actor_id, actor_role=actor_role)
        except WorkflowError as e:
            raise _api_error(e)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(tags=["Cases"], request=NoteRequestSerializer, responses={201: CaseLogSerializer})
    @action(detail=True, methods=["post"])
    def notes(self, request, pk=None):
        ser = NoteRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        self._get_object(pk)
        actor_id, actor_role = self._actor(request)
        try:
            record = CaseService.add_note(
                case_id=pk,
                actor_id=actor_id,
                actor_role=actor_role,
                note=ser.validated_data["note"],
            )
        except WorkflowError as e:
            raise _api_error(e)

        entry = CaseSelector.list_logs(case_id=pk).get(pk=record.id)
        return Response(CaseLogSerializer(entry).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Cases"], request=None, responses={200: CaseSerializer})
    @action(detail=True, methods=["post"])
    def watch(self, request, pk=None):
        self._get_object(pk)
        case = CaseService.watch(case_id=pk, user_id=request.user.id)
        return Response(CaseSerializer(case).data)

    @extend_schema(tags=["Cases"], request=None, responses={200: CaseSerializer})
    @action(detail=True, methods=["post"])
    def unwatch(self, request, pk=None):
        self._get_object(pk)
        case = CaseService.unwatch(case_id=pk, user_id=request.user.id)
        return Response(CaseSerializer(case).data)

    # ----------------------------
    # Workflow
    # ----------------------------
    @extend_schema(tags=["Cases workflow"], request=TransitionRequestSerializer, responses={200: CaseSerializer})
    @action(detail=True, methods=["post"])
    def transition(self, request, pk=None):
        ser = TransitionRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        params = {}
        if data.get("caseworker_id") is not None:
            params["caseworker_id"] = data["caseworker_id"]
        return self._transition(request, pk, data["action"], params=params, comment=data["comment"])

    @extend_schema(tags=["Cases workflow"], request=AssignRequestSerializer, responses={200: CaseSerializer})
    @action(detail=True, methods=["post"])
    def assign(self, request, pk=None):
        ser = AssignRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        return self._transition(
            request,
            pk,
            CaseAction.ASSIGN,
            params={"caseworker_id": ser.validated_data["caseworker_id"]},
            comment=ser.validated_data["comment"],
        )

    def _simple_action(self, request, pk, action_name: str):
        ser = ActionCommentSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        return self._transition(request, pk, action_name, comment=ser.validated_data["comment"])

    @extend_schema(tags=["Cases workflow"], request=ActionCommentSerializer, responses={200: CaseSerializer})
    @action(detail=True, methods=["post"])
    def accept(self, request, pk=None):
        return self._simple_action(request, pk, CaseAction.ACCEPT)

    @extend_schema(tags=["Cases workflow"], request=ActionCommentSerializer, responses={200: CaseSerializer})
    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        return self._simple_action(request, pk, CaseAction.REJECT)

    @extend_schema(tags=["Cases workflow"], request=ActionCommentSerializer, responses={200: CaseSerializer})
    @action(detail=True, methods=["post"], url_path="request-completion")
    def request_completion(self, request, pk=None):
        return self._simple_action(request, pk, CaseAction.REQUEST_COMPLETION)

    @extend_schema(tags=["Cases workflow"], request=ActionCommentSerializer, responses={200: CaseSerializer})
    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        return self._simple_action(request, pk, CaseAction.APPROVE)

    @extend_schema(tags=["Cases workflow"], request=ActionCommentSerializer, responses={200: CaseSerializer})
    @action(detail=True, methods=["post"])
    def close(self, request, pk=None):
        return self._simple_action(request, pk, CaseAction.CLOSE)

    @extend_schema(tags=["Cases workflow"], request=ActionCommentSerializer, responses={200: CaseSerializer})
    @action(detail=True, methods=["post"])
    def archive(self, request, pk=None):
        return self._simple_action(request, pk, CaseAction.ARCHIVE)
