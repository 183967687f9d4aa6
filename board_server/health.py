from __future__ import annotations

import time

from django.http import JsonResponse

from board_server.config import config
from board_server.realtime.apps import get_registry


def health(request):
    """Load balancer health check. Does not touch the channel layer."""
    return JsonResponse(
        {
            "status": "ok",
            "ts": int(time.time()),
            "instance_id": config.INSTANCE_ID,
            "sessions": get_registry().session_count(),
        }
    )
