from django.utils import timezone
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .filters import JobFilter
from .models import Job
from .serializers.jobs_serializers import (
    JobChangeOutSerializer,
    JobCreateSerializer,
    JobEditSerializer,
    JobOutSerializer,
    ProgressUpdateSerializer,
    StatusUpdateSerializer,
)
from .services import mutations
from .services.queries import (
    CHANGES_PAGE_LIMIT,
    changes_after,
    committed_cursor,
    fetch_jobs,
    handshake_cursor,
    is_cursor_lost,
    latest_change_cursor,
)

UUID_LOOKUP_REGEX = r"[0-9a-fA-F-]{32,36}"

HTTP_STATUS_BY_CODE = {
    mutations.CODE_VALIDATION: status.HTTP_400_BAD_REQUEST,
    mutations.CODE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    mutations.CODE_CONFLICT: status.HTTP_409_CONFLICT,
    mutations.CODE_STORE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_response(result: mutations.MutationResult) -> Response:
    return Response(
        {"error": {"code": result.code, "message": result.error}},
        status=HTTP_STATUS_BY_CODE.get(result.code, status.HTTP_400_BAD_REQUEST),
    )


def _body(request) -> dict:
    """Corps JSON attendu: un objet. Tout autre type (liste, scalaire) est traité comme vide."""
    return request.data if isinstance(request.data, dict) else {}


class JobViewSet(viewsets.GenericViewSet, mixins.ListModelMixin, mixins.RetrieveModelMixin):
    """
    Lecture publique (écran TV): select-all / select-by-id, lignes brutes.
    Le tri/filtrage d'affichage est fait côté client par le pipeline de présentation.
    """
    queryset = Job.objects.all().order_by("-updated_at")
    serializer_class = JobOutSerializer
    authentication_classes = []
    permission_classes = [AllowAny]
    filter_backends = []
    lookup_value_regex = UUID_LOOKUP_REGEX


@extend_schema(
    tags=["Change feed"],
    parameters=[
        OpenApiParameter("after", int, description="Curseur du dernier événement reçu (absent = handshake)"),
        OpenApiParameter("limit", int, description=f"Nombre max d'événements (<= {CHANGES_PAGE_LIMIT})"),
    ],
    responses={200: OpenApiResponse(description="{cursor, events[], reset}")},
    examples=[OpenApiExample("Réponse", value={
        "cursor": 42,
        "reset": False,
        "events": [{"id": 42, "eventType": "UPDATE", "new": {"id": "…", "status": "IN_PROGRESS"},
                    "old": None, "commit_timestamp": "2025-01-01T10:00:00Z"}],
    }, response_only=True)],
)
class JobChangeFeedView(APIView):
    """
    GET /jobs/changes/            → handshake: curseur courant, aucun événement
    GET /jobs/changes/?after=<n>  → événements INSERT/UPDATE/DELETE d'id > n
    reset=true si le curseur est inconnu ou purgé: l'abonné doit se resynchroniser.
    Le curseur renvoyé ne dépasse jamais un trou d'id récent (transaction en vol).
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request):
        now = timezone.now()
        after_raw = request.query_params.get("after")
        if after_raw in (None, ""):
            return Response({"cursor": handshake_cursor(now), "events": [], "reset": False})

        try:
            after = int(after_raw)
            limit = int(request.query_params.get("limit", CHANGES_PAGE_LIMIT))
            if after < 0 or limit < 1:
                raise ValueError
        except ValueError:
            return Response(
                {"error": {"code": "INVALID_CURSOR", "message": "after and limit must be positive integers"}},
                status=status.HTTP_400_BAD_REQUEST,
            )

        if is_cursor_lost(after):
            return Response({"cursor": latest_change_cursor(), "events": [], "reset": True})

        events = changes_after(after, min(limit, CHANGES_PAGE_LIMIT))
        cursor = committed_cursor(after, events, now)
        return Response({
            "cursor": cursor,
            "events": JobChangeOutSerializer(events, many=True).data,
            "reset": False,
        })


@extend_schema(tags=["TV"], responses={200: OpenApiResponse(description="{jobs[], fetched_at}")})
class TvJobsView(APIView):
    """Snapshot initial de l'écran TV, déjà trié/filtré/capé."""
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request):
        result = fetch_jobs()
        body = {"jobs": result.jobs, "fetched_at": result.fetched_at.isoformat()}
        if result.error:
            body["error"] = {"code": "STORE_UNAVAILABLE", "message": result.error}
            return Response(body, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        return Response(body)


class JobAdminViewSet(viewsets.GenericViewSet,
                      mixins.ListModelMixin,
                      mixins.RetrieveModelMixin):
    """
    Admin (cookie admin_session): CRUD des jobs + actions status/progress.
    Toutes les écritures passent par services.mutations (règles métier centralisées).
    """
    queryset = Job.objects.all().order_by("-updated_at")
    serializer_class = JobOutSerializer
    filterset_class = JobFilter
    search_fields = ("job_number", "part_number", "title", "notes")
    ordering_fields = ("updated_at", "created_at", "job_number", "priority")
    ordering = ("-updated_at",)
    lookup_value_regex = UUID_LOOKUP_REGEX

    @extend_schema(request=JobCreateSerializer, responses={201: JobOutSerializer})
    def create(self, request):
        result = mutations.create_job(request.data)
        if not result.ok:
            return error_response(result)
        return Response(result.data, status=status.HTTP_201_CREATED)

    @extend_schema(request=JobEditSerializer, responses={200: JobOutSerializer})
    def partial_update(self, request, pk=None):
        result = mutations.update_details(pk, request.data)
        if not result.ok:
            return error_response(result)
        return Response(result.data, status=status.HTTP_200_OK)

    def destroy(self, request, pk=None):
        result = mutations.delete_job(pk)
        if not result.ok:
            return error_response(result)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=StatusUpdateSerializer, responses={200: JobOutSerializer})
    @action(detail=True, methods=["post"], url_path="status")
    def set_status(self, request, pk=None):
        result = mutations.update_status(pk, _body(request).get("status"))
        if not result.ok:
            return error_response(result)
        return Response(result.data, status=status.HTTP_200_OK)

    @extend_schema(request=ProgressUpdateSerializer, responses={200: JobOutSerializer})
    @action(detail=True, methods=["post"], url_path="progress")
    def set_progress(self, request, pk=None):
        body = _body(request)
        result = mutations.update_progress(pk, body.get("pieces_completed"), body.get("total_pieces"))
        if not result.ok:
            return error_response(result)
        return Response(result.data, status=status.HTTP_200_OK)
