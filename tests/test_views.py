from http import HTTPStatus
from unittest import mock

import pytest
import requests
from asgiref.sync import async_to_sync

from board_server.config import config
from board_server.realtime.apps import get_registry


@pytest.fixture
def seeded_session():
    registry = get_registry()
    session = async_to_sync(registry.resolve_or_create)("view-session")
    session.state.apply({"codeText": "print(42)", "zoomLevel": 1.5})
    session.state.add_guest("alice")
    return session


def test_session_state_returns_snapshot(client, seeded_session):
    resp = client.get("/session-state/view-session/")

    assert resp.status_code == HTTPStatus.OK
    data = resp.json()
    assert data["codeText"] == "print(42)"
    assert data["zoomLevel"] == 1.5
    assert data["guests"] == ["alice"]
    assert data["strokes"] == []


def test_legacy_session_path(client, seeded_session):
    resp = client.get("/api/session/view-session/")

    assert resp.status_code == HTTPStatus.OK
    assert resp.json()["codeText"] == "print(42)"


def test_unknown_session_is_not_found_and_not_created(client):
    resp = client.get("/session-state/never-seen/")

    assert resp.status_code == HTTPStatus.NOT_FOUND
    assert resp.json() == {"error": "Session not found"}
    assert get_registry().get("never-seen") is None


def test_session_state_is_read_only(client, seeded_session):
    resp = client.post("/session-state/view-session/", data={}, content_type="application/json")

    assert resp.status_code == HTTPStatus.METHOD_NOT_ALLOWED


def test_health_reports_session_count(client, seeded_session):
    resp = client.get("/health/")

    assert resp.status_code == HTTPStatus.OK
    data = resp.json()
    assert data["status"] == "ok"
    assert data["sessions"] == get_registry().session_count()
    assert data["sessions"] >= 1


EXEC_BODY = {
    "language": "python",
    "version": "3.10.0",
    "files": [{"name": "main.py", "content": "print('hi')"}],
    "stdin": "",
    "sessionId": "should-not-be-forwarded",
}


def test_execute_forwards_whitelisted_fields(client):
    upstream = mock.Mock(status_code=200)
    upstream.json.return_value = {"run": {"output": "hi\n"}}

    with mock.patch("board_server.realtime.views.requests.post", return_value=upstream) as post:
        resp = client.post("/api/execute/", data=EXEC_BODY, content_type="application/json")

    assert resp.status_code == HTTPStatus.OK
    assert resp.json() == {"run": {"output": "hi\n"}}
    args, kwargs = post.call_args
    assert args == (config.EXECUTION_API_URL,)
    assert kwargs["json"] == {k: EXEC_BODY[k] for k in ("language", "version", "files", "stdin")}
    assert kwargs["timeout"] == config.EXECUTION_TIMEOUT_SECONDS


def test_execute_reports_upstream_failure(client):
    with mock.patch(
        "board_server.realtime.views.requests.post",
        side_effect=requests.ConnectionError("runner unreachable"),
    ):
        resp = client.post("/api/execute/", data=EXEC_BODY, content_type="application/json")

    assert resp.status_code == HTTPStatus.BAD_GATEWAY
    assert resp.json()["error"] == "runner unreachable"


def test_execute_reports_upstream_error_status(client):
    upstream = mock.Mock(status_code=500)
    upstream.json.return_value = {"message": "runner exploded"}

    with mock.patch("board_server.realtime.views.requests.post", return_value=upstream):
        resp = client.post("/api/execute/", data=EXEC_BODY, content_type="application/json")

    assert resp.status_code == HTTPStatus.BAD_GATEWAY
    assert resp.json()["details"] == {"message": "runner exploded"}


@pytest.mark.parametrize(
    "body",
    ["not json", "[1, 2]", '{"files": []}', '{"language": "python", "files": "main.py"}'],
)
def test_execute_rejects_bad_bodies(client, body):
    with mock.patch("board_server.realtime.views.requests.post") as post:
        resp = client.post("/api/execute/", data=body, content_type="application/json")

    assert resp.status_code == HTTPStatus.BAD_REQUEST
    post.assert_not_called()


def test_execute_requires_post(client):
    assert client.get("/api/execute/").status_code == HTTPStatus.METHOD_NOT_ALLOWED
