"""
Environment Configuration Module

Loads environment variables for the Azure DevOps integration layer.
Process-wide credentials read here are only fallbacks: per-request headers and
body values take precedence (see core.services.credential_resolver).
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from core.config.deployment import ApiVersions, resolve_profile
from core.domain.credentials import ProcessDefaults, is_usable_pat

# Load environment variables from .env file if it exists
try:
    env_path = Path(__file__).parent.parent.parent / '.env'
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
except (PermissionError, OSError):
    pass

MAX_BATCH_SIZE = 200


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


class EnvironmentConfig:
    """Environment configuration loaded from environment variables."""

    # Azure DevOps identity defaults
    AZDO_ORG_URL: Optional[str] = os.getenv("AZDO_ORG_URL")
    AZDO_PROJECT: Optional[str] = os.getenv("AZDO_PROJECT")
    AZDO_PAT: Optional[str] = os.getenv("AZDO_PAT")

    # API versions (explicit values override the deployment profile)
    AZDO_DEPLOYMENT: Optional[str] = os.getenv("AZDO_DEPLOYMENT")
    AZDO_DEPLOYMENT_CONFIG: Optional[str] = os.getenv("AZDO_DEPLOYMENT_CONFIG")
    AZDO_API_VERSION: Optional[str] = os.getenv("AZDO_API_VERSION")
    AZDO_TESTPLAN_API_VERSION: Optional[str] = os.getenv("AZDO_TESTPLAN_API_VERSION")
    AZDO_TOKENS_API_VERSION: Optional[str] = os.getenv("AZDO_TOKENS_API_VERSION")

    # Transport
    ADO_HTTP_TIMEOUT: float = _float_env("ADO_HTTP_TIMEOUT", 30.0)
    ADO_RETRY_BACKOFF_SECONDS: float = _float_env("ADO_RETRY_BACKOFF_SECONDS", 1.0)
    ADO_BATCH_SIZE: int = min(_int_env("ADO_BATCH_SIZE", MAX_BATCH_SIZE), MAX_BATCH_SIZE)

    # Read cache
    CACHE_TTL_SECONDS: int = _int_env("CACHE_TTL_SECONDS", 60)
    CACHE_MAX_ENTRIES: int = _int_env("CACHE_MAX_ENTRIES", 500)

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json").lower()

    @classmethod
    def process_defaults(cls) -> ProcessDefaults:
        """Fallback identity for the credential resolver.

        The sample-config placeholder PAT is treated as unset.
        """
        pat = cls.AZDO_PAT if is_usable_pat(cls.AZDO_PAT) else None
        return ProcessDefaults(
            organization_url=cls.AZDO_ORG_URL or None,
            personal_access_token=pat,
            project=cls.AZDO_PROJECT or None,
        )

    @classmethod
    def api_versions(cls) -> ApiVersions:
        """API versions from the deployment profile plus explicit overrides."""
        profile = resolve_profile(cls.AZDO_DEPLOYMENT, cls.AZDO_DEPLOYMENT_CONFIG)
        api_version = cls.AZDO_API_VERSION or profile.api_version
        testplan = cls.AZDO_TESTPLAN_API_VERSION or profile.testplan_api_version
        if cls.AZDO_API_VERSION and not cls.AZDO_TESTPLAN_API_VERSION and profile.testplan_api_version:
            testplan = api_version
        return ApiVersions(
            api_version=api_version,
            testplan_api_version=testplan,
            tokens_api_version=cls.AZDO_TOKENS_API_VERSION or profile.tokens_api_version,
        )

    @classmethod
    def validate(cls) -> bool:
        """Check that process-wide defaults are usable.

        Per-request credentials can still be supplied when this returns False.
        """
        return bool(cls.AZDO_ORG_URL) and is_usable_pat(cls.AZDO_PAT)

