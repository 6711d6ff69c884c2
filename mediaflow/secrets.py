from __future__ import annotations
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from google.cloud import secretmanager

logger = logging.getLogger(__name__)

_REPO_ROOT = Path(__file__).resolve().parents[1]
_SECRETS_DIR = _REPO_ROOT / "secrets"

# Service-account key file per deployment environment.
_SERVICE_ACCOUNT_FILES = {
    "prod": "mediaflow-prod-sa.json",
    "dev": "mediaflow-dev-sa.json",
}


def env_file_path(env: str) -> Path:
    return _SECRETS_DIR / f"env.{env}"


def setup_secrets(env: str) -> dict[str, Path]:
    """
    Materialise secrets delivered as environment variables (ENV_FILE, SERVICE_ACCOUNT_KEY)
    into files under `secrets/`. Returns the env var names mapped to the files written or reused.
    """
    _SECRETS_DIR.mkdir(parents=True, exist_ok=True)

    targets: dict[str, Path] = {"ENV_FILE": env_file_path(env)}
    sa_file = _SERVICE_ACCOUNT_FILES.get(env)
    if sa_file:
        targets["SERVICE_ACCOUNT_KEY"] = _SECRETS_DIR / sa_file

    used: dict[str, Path] = {}
    for env_var, file_path in targets.items():
        value = os.environ.get(env_var)
        if not value:
            continue
        if file_path.exists():
            logger.info("Secret file %s already exists, keeping it", file_path)
        else:
            file_path.write_text(value)
        used[env_var] = file_path
        if env_var == "SERVICE_ACCOUNT_KEY":
            os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = str(file_path)
    return used


@lru_cache(maxsize=1)
def _sm_client() -> secretmanager.SecretManagerServiceClient:
    return secretmanager.SecretManagerServiceClient()


@lru_cache(maxsize=256)
def _sm_get(resource: str) -> str:
    """Retrieve a secret value from Google Cloud Secret Manager."""
    resp = _sm_client().access_secret_version(name=resource)
    return resp.payload.data.decode("utf-8")


def get_secret(name: str, default: Optional[str] = None) -> str:
    """
    Resolution order:
      1) NAME (env/.env)
      2) NAME_RESOURCE (Secret Manager resource path)
      3) default, else raise RuntimeError
    """
    if (value := os.getenv(name)) is not None:
        return value
    if (resource := os.getenv(f"{name}_RESOURCE")):
        return _sm_get(resource)
    if default is not None:
        return default
    raise RuntimeError(f"Missing {name} (or {name}_RESOURCE)")
