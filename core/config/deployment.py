"""
Deployment profiles.

Cloud and on-premises servers accept different API versions for the same
logical operation, and older servers have no test plan API at all. A profile
names the versions to send for each endpoint family.

Custom profiles can be declared in a YAML file:

    profiles:
      tfs2018:
        api_version: "4.1"
        testplan_api_version: null
        tokens_api_version: null
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


@dataclass(frozen=True)
class ApiVersions:
    """API versions per endpoint family.

    A None ``testplan_api_version`` means the server has no test plan API and
    callers fall back to the legacy ``test`` area. A None
    ``tokens_api_version`` means PAT lifecycle endpoints are unavailable.
    """
    api_version: str = "7.1"
    testplan_api_version: Optional[str] = "7.1"
    tokens_api_version: Optional[str] = "7.1-preview.1"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApiVersions":
        if not data.get("api_version"):
            raise ValueError("Deployment profile requires 'api_version'")
        return cls(
            api_version=str(data["api_version"]),
            testplan_api_version=_optional_str(data.get("testplan_api_version")),
            tokens_api_version=_optional_str(data.get("tokens_api_version")),
        )


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None or value == "" else str(value)


BUILTIN_PROFILES: Dict[str, ApiVersions] = {
    "cloud": ApiVersions("7.1", "7.1", "7.1-preview.1"),
    "onprem": ApiVersions("5.0", "5.0", None),
}


def load_profiles(config_path: Optional[str] = None) -> Dict[str, ApiVersions]:
    """Return built-in profiles merged with those declared in ``config_path``.

    Args:
        config_path: Optional YAML file with a top-level ``profiles`` mapping

    Raises:
        FileNotFoundError: If config_path is given but does not exist
        ValueError: If the file is not a mapping or a profile is malformed
    """
    profiles = dict(BUILTIN_PROFILES)
    if not config_path:
        return profiles

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Deployment config not found: {config_path}")

    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Deployment config must be a mapping: {config_path}")

    for name, entry in (data.get("profiles") or {}).items():
        if not isinstance(entry, dict):
            raise ValueError(f"Profile '{name}' must be a mapping")
        profiles[str(name).lower()] = ApiVersions.from_dict(entry)
    return profiles


def resolve_profile(name: Optional[str], config_path: Optional[str] = None) -> ApiVersions:
    """Look up a profile by name; ``None`` selects ``cloud``.

    Raises:
        ValueError: If the profile name is unknown
    """
    profiles = load_profiles(config_path)
    key = (name or "cloud").strip().lower()
    if key not in profiles:
        raise ValueError(
            f"Unknown deployment profile '{name}'. Available: {', '.join(sorted(profiles))}"
        )
    return profiles[key]
