import hmac
import logging

from django.conf import settings
from drf_spectacular.utils import OpenApiExample, OpenApiResponse, extend_schema
from rest_framework import serializers, status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from core.auth.session import (
    AdminSessionAuthentication,
    close_admin_session,
    open_admin_session,
)
from core.throttling import LoginRateThrottle

logger = logging.getLogger(__name__)


class LoginInputSerializer(serializers.Serializer):
    username = serializers.CharField(allow_blank=True, trim_whitespace=False)
    password = serializers.CharField(allow_blank=True, trim_whitespace=False)


def _error(code: str, message: str, http_status: int) -> Response:
    return Response({"error": {"code": code, "message": message}}, status=http_status)


def _matches(provided: str, expected: str) -> bool:
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


@extend_schema(
    tags=["Auth"],
    request=LoginInputSerializer,
    responses={
        200: OpenApiResponse(description="Session ouverte, cookie admin_session posé"),
        401: OpenApiResponse(description="INVALID_CREDENTIALS"),
        500: OpenApiResponse(description="AUTH_NOT_CONFIGURED"),
    },
    examples=[OpenApiExample("Login", value={"username": "admin", "password": "…"}, request_only=True)],
)
class LoginView(APIView):
    """
    POST /auth/login
    Compare les identifiants aux variables ADMIN_USERNAME / ADMIN_PASSWORD.
    Aucune session n'est créée si la configuration est absente.
    """
    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = [LoginRateThrottle]

    def post(self, request):
        expected_user = settings.ADMIN_USERNAME
        expected_password = settings.ADMIN_PASSWORD
        if not expected_user or not expected_password:
            logger.error("Admin credentials are not configured")
            return _error("AUTH_NOT_CONFIGURED", "Admin credentials are not configured",
                          status.HTTP_500_INTERNAL_SERVER_ERROR)

        ser = LoginInputSerializer(data=request.data)
        if not ser.is_valid():
            return _error("INVALID_CREDENTIALS", "Invalid credentials", status.HTTP_401_UNAUTHORIZED)

        username = ser.validated_data["username"]
        # les deux comparaisons sont toujours évaluées (temps constant)
        user_ok = _matches(username, expected_user)
        password_ok = _matches(ser.validated_data["password"], expected_password)
        if not (user_ok and password_ok):
            logger.warning("Failed admin login attempt")
            return _error("INVALID_CREDENTIALS", "Invalid credentials", status.HTTP_401_UNAUTHORIZED)

        token = open_admin_session(username)
        response = Response({"authenticated": True, "username": username}, status=status.HTTP_200_OK)
        response.set_cookie(
            settings.ADMIN_SESSION_COOKIE_NAME,
            token,
            max_age=settings.ADMIN_SESSION_MAX_AGE,
            httponly=True,
            samesite="Lax",
            secure=settings.ADMIN_SESSION_COOKIE_SECURE,
            path="/",
        )
        logger.info("Admin session opened for %s", username)
        return response


@extend_schema(tags=["Auth"], request=None, responses={200: OpenApiResponse(description="Session fermée")})
class LogoutView(APIView):
    """POST /auth/logout: idempotent, efface le cookie même sans session valide."""
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        close_admin_session(request.COOKIES.get(settings.ADMIN_SESSION_COOKIE_NAME))
        response = Response({"authenticated": False}, status=status.HTTP_200_OK)
        response.delete_cookie(settings.ADMIN_SESSION_COOKIE_NAME, path="/", samesite="Lax")
        return response


@extend_schema(tags=["Auth"], responses={200: OpenApiResponse(description="{authenticated, username}")})
class SessionView(APIView):
    """GET /auth/session: état de la session courante (jamais 401)."""
    authentication_classes = [AdminSessionAuthentication]
    permission_classes = [AllowAny]

    def get(self, request):
        user = request.user
        if getattr(user, "is_board_admin", False):
            return Response({"authenticated": True, "username": user.username})
        return Response({"authenticated": False, "username": None})
