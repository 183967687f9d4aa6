"""
Load environment variables from AWS Secrets Manager before Django settings are loaded.
Import this module first in asgi.py so os.environ is populated before
board_server.settings (and any _env / _env_bool / _env_csv) are evaluated.

Secret name comes from BOARD_SECRET_NAME (e.g. "boardsync-prod/server").
When it is unset nothing is loaded, so local runs and tests need no AWS access.
Uses setdefault so existing env vars (e.g. from an ECS task definition) override secret values.
"""
import json
import logging
import os

import boto3

logger = logging.getLogger(__name__)


def load_secrets_from_aws(secret_name: str, region: str | None = None) -> int:
    """Copy the secret's JSON keys into os.environ. Returns how many keys were applied."""
    region = region or os.environ.get("AWS_REGION", "us-east-2")
    client = boto3.client("secretsmanager", region_name=region)
    response = client.get_secret_value(SecretId=secret_name)
    secret_str = response.get("SecretString")
    if not secret_str:
        raise RuntimeError(f"Secret {secret_name!r} has no SecretString")
    data = json.loads(secret_str)
    applied = 0
    for key, value in data.items():
        if value is not None:
            os.environ.setdefault(key, str(value))
            applied += 1
    return applied


def bootstrap() -> None:
    secret_name = os.environ.get("BOARD_SECRET_NAME", "").strip()
    if not secret_name:
        return
    applied = load_secrets_from_aws(secret_name)
    logger.info("Loaded %d settings from secret %s", applied, secret_name)


bootstrap()
