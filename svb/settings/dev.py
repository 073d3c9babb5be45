from .base import *

DEBUG = True

ALLOWED_HOSTS = ["127.0.0.1", "localhost"]

# Cookies non sécurisés en dev
SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False
ADMIN_SESSION_COOKIE_SECURE = False

# SQLite par défaut en dev si DATABASE_URL absent
if not env("DATABASE_URL"):
    DATABASES = {"default": parse_database_url(f"sqlite:///{BASE_DIR / 'db.sqlite3'}")}

# DRF renderers plus larges en dev (browsable API si tu veux)
REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"] = (
    "rest_framework.renderers.JSONRenderer",
    "rest_framework.renderers.BrowsableAPIRenderer",
)

# Logs lisibles en dev
LOGGING["handlers"]["console"]["formatter"] = "simple"
