"""
Settings for the board sync service (Django + Channels, ASGI).

Key points:
- Environment-based configuration (optionally seeded from a local `.env`).
- Session state lives in process memory; the channel layer only carries fan-out.
- RedisChannelLayer when REDIS_URL is set, InMemoryChannelLayer otherwise.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List

from corsheaders.defaults import default_headers as _cors_default_headers
from dotenv import load_dotenv

# Local dev convenience; real deployments set the environment directly.
load_dotenv()


BASE_DIR = Path(__file__).resolve().parent.parent


def _env(name: str, default: str | None = None) -> str | None:
    v = os.environ.get(name)
    return v if v not in (None, "") else default


def _env_bool(name: str, default: bool = False) -> bool:
    v = _env(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_csv(name: str, default: str = "") -> List[str]:
    raw = _env(name, default) or ""
    return [x.strip() for x in raw.split(",") if x.strip()]


DEBUG = _env_bool("DJANGO_DEBUG", default=False)

SECRET_KEY = _env("DJANGO_SECRET_KEY", "dev-insecure-secret-key-change-me")
if not DEBUG and (not SECRET_KEY or SECRET_KEY.startswith("dev-insecure-")):
    raise RuntimeError("DJANGO_SECRET_KEY must be set in production")

ALLOWED_HOSTS = _env_csv("DJANGO_ALLOWED_HOSTS", default="localhost,127.0.0.1")

# The web client is served from a different origin (e.g. React dev server on :3000).
CORS_ALLOWED_ORIGINS = _env_csv("CORS_ALLOWED_ORIGINS", default="http://localhost:3000,http://127.0.0.1:3000")
CORS_ALLOW_HEADERS = list(_cors_default_headers)

USE_X_FORWARDED_HOST = True
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_SSL_REDIRECT = _env_bool("DJANGO_SECURE_SSL_REDIRECT", default=not DEBUG)


INSTALLED_APPS = [
    "corsheaders",
    "django.contrib.staticfiles",
    # Channels must be installed to enable ASGI + websocket routing.
    "channels",
    "board_server.realtime.apps.RealtimeConfig",
]

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
]

ROOT_URLCONF = "board_server.urls"

ASGI_APPLICATION = "board_server.asgi.application"

# No database: sessions are in-memory only and there is nothing durable to store.
DATABASES: dict = {}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

STATIC_URL = "static/"


#
# Channels layer
#
# Fan-out goes through Channels groups. Without REDIS_URL the in-memory layer is
# used, which is correct for a single process.
#
REDIS_URL = _env("REDIS_URL", None)
if REDIS_URL:
    CHANNEL_LAYERS = {
        "default": {
            "BACKEND": "channels_redis.core.RedisChannelLayer",
            "CONFIG": {
                "hosts": [REDIS_URL],
                "capacity": int(_env("CHANNEL_LAYER_CAPACITY", "1000") or "1000"),
                "expiry": int(_env("CHANNEL_LAYER_EXPIRY", "60") or "60"),
            },
        }
    }
else:
    CHANNEL_LAYERS = {
        "default": {
            "BACKEND": "channels.layers.InMemoryChannelLayer",
            "CONFIG": {
                "capacity": int(_env("CHANNEL_LAYER_CAPACITY", "1000") or "1000"),
                "expiry": int(_env("CHANNEL_LAYER_EXPIRY", "60") or "60"),
            },
        }
    }


LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {"plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"}},
    "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "plain"}},
    "root": {"handlers": ["console"], "level": _env("DJANGO_LOG_LEVEL", "INFO") or "INFO"},
}
