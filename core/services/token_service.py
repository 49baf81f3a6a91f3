"""
Personal access token lifecycle service.

Responses are scrubbed of the token secret before they leave this module;
the API only returns it on creation, which this service does not offer.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from core.domain.credentials import Credentials
from core.domain.errors import ValidationError
from core.interfaces.repository import ITokenRepository

logger = logging.getLogger(__name__)

DISPLAY_FILTERS = ("active", "revoked", "expired", "all")
SORT_OPTIONS = ("displayName", "displayDate", "status")


@dataclass
class TokenPage:
    tokens: List[Dict[str, Any]] = field(default_factory=list)
    continuation_token: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"patTokens": self.tokens, "continuationToken": self.continuation_token}


def scrub_token(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in (data or {}).items() if k != "token"}


def _authorization_id(value: Any) -> str:
    try:
        return str(UUID(str(value)))
    except (TypeError, ValueError):
        raise ValidationError(f"authorizationId must be a GUID, got {value!r}")


class TokenService:
    """List, read, update and revoke the caller's personal access tokens."""

    def __init__(self, tokens: ITokenRepository):
        self._tokens = tokens

    def list_tokens(
        self,
        credentials: Credentials,
        display_filter: str = "active",
        sort_by: Optional[str] = None,
        ascending: bool = True,
        continuation_token: Optional[str] = None
    ) -> TokenPage:
        if display_filter not in DISPLAY_FILTERS:
            raise ValidationError(f"displayFilterOption must be one of {', '.join(DISPLAY_FILTERS)}")
        if sort_by is not None and sort_by not in SORT_OPTIONS:
            raise ValidationError(f"sortByOption must be one of {', '.join(SORT_OPTIONS)}")

        params: Dict[str, Any] = {
            "displayFilterOption": display_filter,
            "isSortAscending": str(bool(ascending)).lower(),
        }
        if sort_by:
            params["sortByOption"] = sort_by
        if continuation_token:
            params["continuationToken"] = continuation_token

        data = self._tokens.list_tokens(credentials, params)
        return TokenPage(
            tokens=[scrub_token(t) for t in data.get("patTokens", [])],
            continuation_token=data.get("continuationToken") or None,
        )

    def get_token(self, credentials: Credentials, authorization_id: str) -> Dict[str, Any]:
        data = self._tokens.get_token(credentials, _authorization_id(authorization_id))
        return scrub_token(data.get("patToken", data))

    def update_token(
        self,
        credentials: Credentials,
        authorization_id: str,
        display_name: Optional[str] = None,
        scope: Optional[Sequence[str]] = None,
        valid_to: Optional[Any] = None,
        all_orgs: Optional[bool] = None
    ) -> Dict[str, Any]:
        """Change a token's name, scopes or expiry.

        ``scope`` may be a list of scope names or a space-separated string.

        Raises:
            ValidationError: If nothing is being changed or values are malformed
        """
        body: Dict[str, Any] = {"authorizationId": _authorization_id(authorization_id)}
        if display_name is not None:
            if not display_name.strip():
                raise ValidationError("displayName cannot be blank")
            body["displayName"] = display_name.strip()
        if scope is not None:
            scopes = scope.split() if isinstance(scope, str) else list(scope)
            if not scopes:
                raise ValidationError("scope cannot be empty")
            body["scope"] = " ".join(scopes)
        if valid_to is not None:
            body["validTo"] = valid_to.isoformat() if isinstance(valid_to, datetime) else str(valid_to)
        if all_orgs is not None:
            body["allOrgs"] = bool(all_orgs)
        if len(body) == 1:
            raise ValidationError("At least one of displayName, scope, validTo or allOrgs is required")

        data = self._tokens.update_token(credentials, body)
        logger.info("pat_updated", extra={"authorization_id": body["authorizationId"]})
        return scrub_token(data.get("patToken", data))

    def revoke_token(self, credentials: Credentials, authorization_id: str) -> None:
        auth_id = _authorization_id(authorization_id)
        self._tokens.revoke_token(credentials, auth_id)
        logger.info("pat_revoked", extra={"authorization_id": auth_id})
