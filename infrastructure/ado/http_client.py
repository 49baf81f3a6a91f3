"""
ADO HTTP Client - Low-level HTTP interactions with Azure DevOps.

This class handles only HTTP concerns: Basic authentication from the
per-request PAT, the api-version parameter, retries, and classification of
failures into the local error taxonomy.
"""
import base64
import logging
import time
from typing import Any, Callable, Dict, Optional

import requests

from core.domain.credentials import Credentials
from core.domain.errors import ADOIntegrationError, ErrorKind, error_for_kind
from core.services.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
JSON_PATCH_CONTENT_TYPE = "application/json-patch+json"

MAX_ERROR_TEXT = 500

DIAGNOSTIC_HEADERS = ("x-vss-e2eid", "activityid", "x-tfs-session", "www-authenticate")


def basic_auth_header(pat: str) -> str:
    """Basic credentials with an empty user name and the PAT as password."""
    credentials = base64.b64encode(f":{pat}".encode()).decode()
    return f"Basic {credentials}"


def classify_status(status_code: int) -> Optional[ErrorKind]:
    """Map an HTTP status to an error kind; None means success.

    203 is how Azure DevOps answers an invalid PAT: a sign-in HTML page
    served as "non-authoritative information".
    """
    if status_code in (401, 203):
        return ErrorKind.AUTH_ERROR
    if status_code == 403:
        return ErrorKind.FORBIDDEN
    if status_code == 404:
        return ErrorKind.NOT_FOUND
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code >= 500:
        return ErrorKind.UPSTREAM_ERROR
    if status_code >= 400:
        return ErrorKind.VALIDATION
    return None


def extract_error_message(response: requests.Response) -> str:
    """Upstream message verbatim: JSON ``message`` field, else body text, else reason."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        message = data.get("message") or data.get("Message")
        if message:
            return str(message)

    text = (response.text or "").strip()
    if text and response.status_code != 203 and "<html" not in text[:200].lower():
        return text[:MAX_ERROR_TEXT]
    if response.status_code == 203:
        return "Authentication failed: the Personal Access Token is invalid or expired"
    return response.reason or f"HTTP {response.status_code}"


class ADOHttpClient:
    """Low-level HTTP client for Azure DevOps API."""

    def __init__(
        self,
        timeout: float = 30,
        retry_policy: Optional[RetryPolicy] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize ADO HTTP client.

        Args:
            timeout: Request timeout in seconds
            retry_policy: Retries per error kind; defaults to one retry for
                rate limiting and server errors
            session: HTTP session, injectable for tests
            sleep: Backoff function, injectable for tests
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._timeout = timeout
        self._retry_policy = retry_policy or RetryPolicy()
        self._session = session or requests.Session()
        self._sleep = sleep

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    def build_url(self, credentials: Credentials, path: str) -> str:
        """Join ``path`` onto the organization URL; absolute URLs pass through."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{credentials.organization_url.rstrip('/')}/{path.lstrip('/')}"

    def _headers(self, credentials: Credentials, content_type: str) -> Dict[str, str]:
        return {
            'Content-Type': content_type,
            'Accept': JSON_CONTENT_TYPE,
            'Authorization': basic_auth_header(credentials.personal_access_token),
        }

    def send(
        self,
        method: str,
        path: str,
        credentials: Credentials,
        api_version: Optional[str],
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
        content_type: Optional[str] = None
    ) -> Any:
        """Send an authenticated request and return the parsed JSON body.

        Args:
            method: HTTP method
            path: Path relative to the organization URL, or an absolute URL
            credentials: Identity for this call
            api_version: Value of the api-version parameter; None omits it
            params: Extra query parameters
            body: JSON-serializable request body
            content_type: Defaults to application/json

        Returns:
            Parsed JSON, or None for an empty response

        Raises:
            ADOIntegrationError: Subclass matching the classified failure kind
        """
        url = self.build_url(credentials, path)
        query = dict(params or {})
        if api_version is not None:
            query['api-version'] = api_version
        headers = self._headers(credentials, content_type or JSON_CONTENT_TYPE)

        attempt = 0
        while True:
            try:
                return self._send_once(method, url, headers, query, body)
            except ADOIntegrationError as error:
                if not self._retry_policy.should_retry(error.kind, attempt):
                    raise
                attempt += 1
                logger.warning(
                    "ado_request_retry",
                    extra={
                        "method": method,
                        "url": url,
                        "error_kind": error.kind.value,
                        "status_code": error.status_code,
                        "attempt": attempt,
                        "backoff_seconds": self._retry_policy.backoff_seconds,
                    }
                )
                self._sleep(self._retry_policy.backoff_seconds)

    def _send_once(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        params: Dict[str, Any],
        body: Any
    ) -> Any:
        started = time.monotonic()
        try:
            response = self._session.request(
                method,
                url,
                headers=headers,
                params=params,
                json=body,
                timeout=self._timeout,
            )
        except requests.Timeout as e:
            raise error_for_kind(
                ErrorKind.NETWORK,
                f"Request to Azure DevOps timed out after {self._timeout}s",
                details={"method": method, "url": url, "cause": type(e).__name__},
            )
        except requests.ConnectionError as e:
            raise error_for_kind(
                ErrorKind.NETWORK,
                f"Cannot reach Azure DevOps at {url}: {e}",
                details={"method": method, "url": url, "cause": type(e).__name__},
            )

        duration_ms = (time.monotonic() - started) * 1000
        logger.debug(
            "ado_request",
            extra={
                "method": method,
                "url": url,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            }
        )

        kind = classify_status(response.status_code)
        if kind is None and self._is_sign_in_page(response):
            kind = ErrorKind.AUTH_ERROR
        if kind is not None:
            raise error_for_kind(
                kind,
                extract_error_message(response),
                status_code=response.status_code,
                details=self._error_details(method, url, response),
            )

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise error_for_kind(
                ErrorKind.UPSTREAM_ERROR,
                "Azure DevOps returned a non-JSON response",
                status_code=response.status_code,
                details=self._error_details(method, url, response),
            )

    @staticmethod
    def _is_sign_in_page(response: requests.Response) -> bool:
        content_type = response.headers.get('Content-Type', '')
        return content_type.startswith('text/html')

    @staticmethod
    def _error_details(method: str, url: str, response: requests.Response) -> Dict[str, Any]:
        details: Dict[str, Any] = {"method": method, "url": url}
        lowered = {k.lower(): v for k, v in response.headers.items()}
        for name in DIAGNOSTIC_HEADERS:
            if name in lowered:
                details[name] = lowered[name]
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            for key in ("typeKey", "errorCode", "eventId"):
                if key in data:
                    details[key] = data[key]
        return details
