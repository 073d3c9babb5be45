import hashlib
import secrets
from dataclasses import dataclass
from typing import Optional, Tuple

from django.conf import settings
from django.core.cache import cache
from rest_framework.authentication import BaseAuthentication

SESSION_CACHE_PREFIX = "svb-admin-session:"


def _cache_key(token: str) -> str:
    # on ne garde pas le token en clair dans le cache
    return SESSION_CACHE_PREFIX + hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass
class BoardAdminUser:
    username: str
    is_authenticated: bool = True
    is_board_admin: bool = True


def open_admin_session(username: str) -> str:
    token = secrets.token_urlsafe(32)
    cache.set(_cache_key(token), {"username": username}, timeout=settings.ADMIN_SESSION_MAX_AGE)
    return token


def close_admin_session(token: Optional[str]) -> None:
    if token:
        cache.delete(_cache_key(token))


def resolve_admin_session(token: Optional[str]) -> Optional[BoardAdminUser]:
    if not token:
        return None
    data = cache.get(_cache_key(token))
    if not data:
        return None
    return BoardAdminUser(username=data["username"])


class AdminSessionAuthentication(BaseAuthentication):
    """
    Authentification par cookie `admin_session` (token opaque, session en cache).
    - cookie absent/expiré -> None (requête anonyme, la permission renverra 401)
    - pas de re-validation CSRF: cookie SameSite=Lax + API JSON
    """

    def authenticate(self, request) -> Optional[Tuple[BoardAdminUser, str]]:
        token = request.COOKIES.get(settings.ADMIN_SESSION_COOKIE_NAME)
        user = resolve_admin_session(token)
        if user is None:
            return None
        return (user, token)

    def authenticate_header(self, request) -> str:
        # présence d'un header => DRF répond 401 (et non 403) aux anonymes
        return 'Cookie realm="svb-admin"'
