"""
HTTP views for the realtime board app.

- GET /session-state/<session_id>/: read-only snapshot; 404 if never created.
- POST /api/execute/: proxy to the third-party code runner used by the editor
  panel. Stateless; unrelated to session synchronisation.
"""

from __future__ import annotations

import json
import logging

import requests
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from board_server.config import config

from .apps import get_registry

logger = logging.getLogger(__name__)

# Fields forwarded to the runner as-is; anything else in the body is ignored.
EXECUTION_FIELDS = (
    "language",
    "version",
    "files",
    "stdin",
    "args",
    "compile_timeout",
    "run_timeout",
    "compile_memory_limit",
    "run_memory_limit",
)


@require_http_methods(["GET"])
async def session_state(request, session_id: str):
    snapshot = await get_registry().snapshot(session_id)
    if snapshot is None:
        return JsonResponse({"error": "Session not found"}, status=404)
    return JsonResponse(snapshot)


@csrf_exempt
@require_http_methods(["POST"])
def execute_code(request):
    """
    Accept {language, version, files, ...} from the editor and forward it to
    EXECUTION_API_URL. The runner's JSON ({run: {output}} etc.) is returned unchanged.
    """
    try:
        body = json.loads(request.body) if request.body else {}
    except json.JSONDecodeError:
        return JsonResponse({"error": "Invalid JSON"}, status=400)
    if not isinstance(body, dict):
        return JsonResponse({"error": "Request body must be a JSON object"}, status=400)
    if not body.get("language") or not isinstance(body.get("files"), list):
        return JsonResponse({"error": "language and files are required"}, status=400)

    forwarded = {key: body[key] for key in EXECUTION_FIELDS if key in body}

    try:
        resp = requests.post(config.EXECUTION_API_URL, json=forwarded, timeout=config.EXECUTION_TIMEOUT_SECONDS)
    except requests.RequestException as e:
        logger.warning("Execution runner call failed: %s", e)
        return JsonResponse({"error": str(e), "details": None}, status=502)

    try:
        data = resp.json()
    except ValueError:
        data = {"message": resp.text or f"HTTP {resp.status_code}"}

    if resp.status_code >= 400:
        logger.warning("Execution runner returned HTTP %s", resp.status_code)
        return JsonResponse({"error": f"Runner returned HTTP {resp.status_code}", "details": data}, status=502)

    return JsonResponse(data, status=resp.status_code, safe=False)
