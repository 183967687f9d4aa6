"""
Django app configuration for the realtime board app.
Builds the process-wide SessionRegistry on startup.
"""

import logging

from django.apps import AppConfig, apps

from board_server.config import config

from .session_manager import SessionRegistry

logger = logging.getLogger(__name__)


class RealtimeConfig(AppConfig):
    name = "board_server.realtime"
    label = "realtime"

    registry: SessionRegistry

    def ready(self):
        self.registry = SessionRegistry(
            idle_ttl_seconds=config.SESSION_IDLE_TTL_SECONDS,
            sweep_interval_seconds=config.SESSION_SWEEP_INTERVAL_SECONDS,
        )
        if config.SESSION_IDLE_TTL_SECONDS > 0:
            logger.info("Idle board sessions are evicted after %ss", config.SESSION_IDLE_TTL_SECONDS)


def get_registry() -> SessionRegistry:
    return apps.get_app_config("realtime").registry
