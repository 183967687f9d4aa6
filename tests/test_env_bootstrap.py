import json
import os
from unittest import mock

import pytest

from board_server import env_bootstrap


@pytest.fixture(autouse=True)
def isolated_environ():
    with mock.patch.dict(os.environ):
        yield


@pytest.fixture
def secrets_client():
    client = mock.Mock()
    with mock.patch("board_server.env_bootstrap.boto3.client", return_value=client) as factory:
        client.factory = factory
        yield client


def test_secret_values_fill_missing_env_only(secrets_client):
    os.environ["REDIS_URL"] = "redis://from-task-definition:6379"
    os.environ.pop("DJANGO_ALLOWED_HOSTS", None)
    os.environ.pop("SESSION_IDLE_TTL_SECONDS", None)
    secrets_client.get_secret_value.return_value = {
        "SecretString": json.dumps(
            {
                "REDIS_URL": "redis://from-secret:6379",
                "DJANGO_ALLOWED_HOSTS": "board.example.com",
                "SESSION_IDLE_TTL_SECONDS": 3600,
                "UNUSED": None,
            }
        )
    }

    applied = env_bootstrap.load_secrets_from_aws("boardsync/server", region="eu-west-1")

    assert applied == 3
    assert os.environ["REDIS_URL"] == "redis://from-task-definition:6379"
    assert os.environ["DJANGO_ALLOWED_HOSTS"] == "board.example.com"
    assert os.environ["SESSION_IDLE_TTL_SECONDS"] == "3600"
    assert "UNUSED" not in os.environ
    secrets_client.factory.assert_called_once_with("secretsmanager", region_name="eu-west-1")
    secrets_client.get_secret_value.assert_called_once_with(SecretId="boardsync/server")


def test_secret_without_string_is_an_error(secrets_client):
    secrets_client.get_secret_value.return_value = {"SecretBinary": b"..."}

    with pytest.raises(RuntimeError):
        env_bootstrap.load_secrets_from_aws("boardsync/server")


def test_bootstrap_is_a_noop_without_secret_name(secrets_client):
    os.environ.pop("BOARD_SECRET_NAME", None)

    env_bootstrap.bootstrap()

    secrets_client.factory.assert_not_called()


def test_bootstrap_loads_named_secret(secrets_client):
    os.environ["BOARD_SECRET_NAME"] = "boardsync/server"
    os.environ.pop("BOARD_TEST_ONLY_KEY", None)
    secrets_client.get_secret_value.return_value = {"SecretString": json.dumps({"BOARD_TEST_ONLY_KEY": "1"})}

    env_bootstrap.bootstrap()

    assert os.environ["BOARD_TEST_ONLY_KEY"] == "1"
    secrets_client.get_secret_value.assert_called_once_with(SecretId="boardsync/server")
