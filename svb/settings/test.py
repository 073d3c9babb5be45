from .base import *

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}
}

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "shopfloor"

# Pas de broker en test
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

# Pas de manifest whitenoise en test
STORAGES["staticfiles"] = {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"}

REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {"login": "1000/min"}

LOGGING["loggers"]["jobs"]["level"] = "WARNING"
LOGGING["loggers"]["display"]["level"] = "WARNING"
