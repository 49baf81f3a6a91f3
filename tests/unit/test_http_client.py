"""
Unit tests for the Azure DevOps HTTP client.

Covers authentication headers, api-version handling, status classification
and the retry policy, all against a fake session.
"""
import base64
import sys
from pathlib import Path

import pytest
import requests

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from core.domain.errors import (
    AuthError,
    ErrorKind,
    Forbidden,
    NetworkUnreachable,
    NotFound,
    RateLimited,
    UpstreamServerError,
    ValidationError,
)
from core.services.retry_policy import RetryPolicy
from infrastructure.ado.http_client import (
    ADOHttpClient,
    JSON_PATCH_CONTENT_TYPE,
    basic_auth_header,
    classify_status,
)
from tests.fakes import FakeSession, RecordingSleep, PAT, make_credentials, make_response


@pytest.fixture
def sleep():
    return RecordingSleep()


def _client(session, sleep, retry_policy=None):
    return ADOHttpClient(timeout=5, retry_policy=retry_policy, session=session, sleep=sleep)


class TestRequestShape:
    """Test what goes on the wire."""

    def test_basic_auth_with_empty_user(self):
        """Test the PAT is sent as the password of an empty user."""
        header = basic_auth_header("abc")
        assert header.startswith("Basic ")
        assert base64.b64decode(header[len("Basic "):]).decode() == ":abc"

    def test_api_version_and_url(self, sleep):
        """Test the api-version parameter and org-relative URL."""
        session = FakeSession(make_response(200, {"value": []}))
        client = _client(session, sleep)

        result = client.send("GET", "_apis/projects", make_credentials(), "7.1", params={"$top": 1})

        assert result == {"value": []}
        call = session.calls[0]
        assert call["url"] == "https://dev.azure.com/contoso/_apis/projects"
        assert call["params"] == {"$top": 1, "api-version": "7.1"}
        assert call["timeout"] == 5
        assert call["headers"]["Authorization"] == basic_auth_header(PAT)

    def test_api_version_omitted_when_none(self, sleep):
        """Test a None api-version is not sent."""
        session = FakeSession(make_response(200, {}))
        _client(session, sleep).send("GET", "_apis/projects", make_credentials(), None)
        assert "api-version" not in session.calls[0]["params"]

    def test_patch_content_type(self, sleep):
        """Test the JSON Patch content type is forwarded."""
        session = FakeSession(make_response(200, {"id": 1}))
        _client(session, sleep).send(
            "PATCH", "_apis/wit/workitems/1", make_credentials(), "7.1",
            body=[{"op": "add", "path": "/fields/System.Title", "value": "x"}],
            content_type=JSON_PATCH_CONTENT_TYPE,
        )
        assert session.calls[0]["headers"]["Content-Type"] == JSON_PATCH_CONTENT_TYPE

    def test_absolute_url_passes_through(self, sleep):
        """Test absolute URLs are not joined onto the organization URL."""
        session = FakeSession(make_response(200, {}))
        _client(session, sleep).send("GET", "https://vssps.dev.azure.com/contoso/_apis/tokens/pats",
                                     make_credentials(), "7.1-preview.1")
        assert session.calls[0]["url"] == "https://vssps.dev.azure.com/contoso/_apis/tokens/pats"

    def test_empty_body_returns_none(self, sleep):
        """Test 204 responses yield None."""
        session = FakeSession(make_response(204))
        assert _client(session, sleep).send("DELETE", "x", make_credentials(), "7.1") is None


class TestClassification:
    """Test status to error-kind mapping."""

    @pytest.mark.parametrize("status,kind", [
        (401, ErrorKind.AUTH_ERROR),
        (203, ErrorKind.AUTH_ERROR),
        (403, ErrorKind.FORBIDDEN),
        (404, ErrorKind.NOT_FOUND),
        (429, ErrorKind.RATE_LIMITED),
        (500, ErrorKind.UPSTREAM_ERROR),
        (503, ErrorKind.UPSTREAM_ERROR),
        (400, ErrorKind.VALIDATION),
        (409, ErrorKind.VALIDATION),
        (200, None),
    ])
    def test_classify_status(self, status, kind):
        """Test each status maps to its kind."""
        assert classify_status(status) == kind

    def test_401_raises_auth_error(self, sleep):
        """Test an unauthorized response is not retried."""
        session = FakeSession(make_response(401, text="Unauthorized"))
        with pytest.raises(AuthError) as exc_info:
            _client(session, sleep).send("GET", "x", make_credentials(), "7.1")
        assert exc_info.value.status_code == 401
        assert len(session.calls) == 1
        assert sleep.delays == []

    def test_203_sign_in_page_is_auth_error(self, sleep):
        """Test the HTML sign-in page for a bad PAT is an auth error."""
        session = FakeSession(make_response(203, text="<html>Sign In</html>",
                                            headers={"Content-Type": "text/html"}))
        with pytest.raises(AuthError) as exc_info:
            _client(session, sleep).send("GET", "x", make_credentials(), "7.1")
        assert "Personal Access Token" in exc_info.value.message

    def test_html_200_is_auth_error(self, sleep):
        """Test a 200 sign-in redirect page is an auth error."""
        session = FakeSession(make_response(200, text="<html>login</html>",
                                            headers={"Content-Type": "text/html; charset=utf-8"}))
        with pytest.raises(AuthError):
            _client(session, sleep).send("GET", "x", make_credentials(), "7.1")

    def test_403_forbidden(self, sleep):
        """Test a permission failure keeps the upstream message verbatim."""
        session = FakeSession(make_response(403, {"message": "TF400813: Access denied"}))
        with pytest.raises(Forbidden) as exc_info:
            _client(session, sleep).send("GET", "x", make_credentials(), "7.1")
        assert exc_info.value.message == "TF400813: Access denied"

    def test_404_not_found_with_details(self, sleep):
        """Test upstream error codes are carried into details."""
        body = {"message": "Work item 9 does not exist", "typeKey": "WorkItemUnauthorizedAccessException",
                "errorCode": 0, "eventId": 3200}
        session = FakeSession(make_response(404, body, headers={"ActivityId": "abc"}))
        with pytest.raises(NotFound) as exc_info:
            _client(session, sleep).send("GET", "x", make_credentials(), "7.1")
        details = exc_info.value.details
        assert details["typeKey"] == "WorkItemUnauthorizedAccessException"
        assert details["activityid"] == "abc"
        assert details["method"] == "GET"

    def test_400_is_validation(self, sleep):
        """Test other client errors are validation failures."""
        session = FakeSession(make_response(400, {"message": "TF51005: bad query"}))
        with pytest.raises(ValidationError):
            _client(session, sleep).send("POST", "x", make_credentials(), "7.1", body={})

    def test_dns_failure_is_network(self, sleep):
        """Test an unresolvable host maps to NETWORK."""
        session = FakeSession(requests.ConnectionError("Name or service not known"))
        with pytest.raises(NetworkUnreachable) as exc_info:
            _client(session, sleep).send("GET", "x", make_credentials(), "7.1")
        assert exc_info.value.status_code is None
        assert len(session.calls) == 1

    def test_timeout_is_network(self, sleep):
        """Test a timeout maps to NETWORK."""
        session = FakeSession(requests.Timeout())
        with pytest.raises(NetworkUnreachable):
            _client(session, sleep).send("GET", "x", make_credentials(), "7.1")

    def test_non_json_success_is_upstream_error(self, sleep):
        """Test a 2xx body that is not JSON is an upstream failure."""
        session = FakeSession(make_response(200, text="not json"), make_response(200, text="not json"))
        with pytest.raises(UpstreamServerError):
            _client(session, sleep).send("GET", "x", make_credentials(), "7.1")

    def test_pat_not_in_error(self, sleep):
        """Test error payloads never contain the token."""
        session = FakeSession(make_response(401, text="Unauthorized"))
        with pytest.raises(AuthError) as exc_info:
            _client(session, sleep).send("GET", "x", make_credentials(), "7.1")
        assert PAT not in str(exc_info.value.to_dict())


class TestRetry:
    """Test the retry table."""

    def test_429_retried_once_then_succeeds(self, sleep):
        """Test rate limiting is retried after the backoff."""
        session = FakeSession(make_response(429, text="slow down"), make_response(200, {"ok": True}))
        client = _client(session, sleep, RetryPolicy(backoff_seconds=1.5))

        assert client.send("GET", "x", make_credentials(), "7.1") == {"ok": True}
        assert len(session.calls) == 2
        assert sleep.delays == [1.5]

    def test_500_retried_once_then_raises(self, sleep):
        """Test a persistent server error surfaces after one retry."""
        session = FakeSession(make_response(500, text="boom"), make_response(502, text="boom"))
        with pytest.raises(UpstreamServerError) as exc_info:
            _client(session, sleep).send("GET", "x", make_credentials(), "7.1")
        assert exc_info.value.status_code == 502
        assert len(session.calls) == 2
        assert len(sleep.delays) == 1

    def test_persistent_429(self, sleep):
        """Test rate limiting surfaces as RATE_LIMITED after retries run out."""
        session = FakeSession(make_response(429), make_response(429))
        with pytest.raises(RateLimited):
            _client(session, sleep).send("GET", "x", make_credentials(), "7.1")

    def test_network_not_retried_by_default(self, sleep):
        """Test kinds absent from the table are not retried."""
        session = FakeSession(requests.ConnectionError("refused"))
        with pytest.raises(NetworkUnreachable):
            _client(session, sleep).send("GET", "x", make_credentials(), "7.1")
        assert sleep.delays == []

    def test_custom_table(self, sleep):
        """Test the table can add retries for other kinds."""
        policy = RetryPolicy(backoff_seconds=0, retries={ErrorKind.NETWORK: 2})
        session = FakeSession(requests.ConnectionError("a"), requests.ConnectionError("b"),
                              make_response(200, {"ok": 1}))
        assert _client(session, sleep, policy).send("GET", "x", make_credentials(), "7.1") == {"ok": 1}
        assert len(session.calls) == 3


class TestRetryPolicy:
    """Test RetryPolicy itself."""

    def test_defaults(self):
        """Test defaults retry rate limiting and server errors once."""
        policy = RetryPolicy()
        assert policy.retries_for(ErrorKind.RATE_LIMITED) == 1
        assert policy.retries_for(ErrorKind.UPSTREAM_ERROR) == 1
        assert policy.retries_for(ErrorKind.AUTH_ERROR) == 0
        assert policy.should_retry(ErrorKind.RATE_LIMITED, 0)
        assert not policy.should_retry(ErrorKind.RATE_LIMITED, 1)

    def test_negative_values_rejected(self):
        """Test invalid policies fail at construction."""
        with pytest.raises(ValueError):
            RetryPolicy(backoff_seconds=-1)
        with pytest.raises(ValueError):
            RetryPolicy(retries={ErrorKind.NETWORK: -1})
