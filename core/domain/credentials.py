"""
Per-request identity for calls to Azure DevOps.
"""
import hashlib
from dataclasses import dataclass, field
from typing import Optional


PLACEHOLDER_PAT = "your_actual_pat_token_here"


def normalize_org_url(org_url: str, project: Optional[str] = None) -> str:
    """Strip trailing slashes and an accidentally pasted ``/{project}`` suffix.

    Args:
        org_url: Organization URL as supplied by the caller
        project: Project name, if known

    Returns:
        Normalized organization URL
    """
    url = (org_url or "").strip().rstrip("/")
    if project:
        suffix = "/" + project.strip().strip("/")
        if len(suffix) > 1 and url.lower().endswith(suffix.lower()):
            url = url[:-len(suffix)].rstrip("/")
    return url


def is_usable_pat(pat: Optional[str]) -> bool:
    """True if ``pat`` is non-blank and not the sample-config placeholder."""
    if not pat or not pat.strip():
        return False
    return pat.strip() != PLACEHOLDER_PAT


@dataclass(frozen=True)
class Credentials:
    """Resolved identity for one logical operation.

    The token is excluded from ``repr`` so it never reaches logs or tracebacks.
    """
    organization_url: str
    personal_access_token: str = field(repr=False)
    project: str = ""

    @property
    def fingerprint(self) -> str:
        """Short, non-reversible identifier of the token for cache keys and logs."""
        digest = hashlib.sha256(self.personal_access_token.encode("utf-8")).hexdigest()
        return digest[:16]

    def with_project(self, project: str) -> "Credentials":
        return Credentials(self.organization_url, self.personal_access_token, project)


@dataclass(frozen=True)
class ProcessDefaults:
    """Process-wide fallback identity, injected into the credential resolver."""
    organization_url: Optional[str] = None
    personal_access_token: Optional[str] = field(default=None, repr=False)
    project: Optional[str] = None
