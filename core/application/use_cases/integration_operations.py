"""
Inbound operations of the integration layer.

Each method takes the raw pieces of an HTTP request (headers, parsed body,
query parameters), resolves the caller's identity, validates and converts
loosely shaped input into typed parameters, and delegates to a service.
Failures are raised as ADOIntegrationError; ``http_status_for`` gives the
route layer the status code to answer with.
"""
from typing import Any, Dict, List, Mapping, Optional

from core.domain.credentials import Credentials, ProcessDefaults
from core.domain.errors import ADOIntegrationError, ErrorKind, ValidationError
from core.domain.test_case import FindOrCreateRequest, TestStep
from core.services.classification_nodes import ClassificationNodeService
from core.services.credential_resolver import resolve
from core.services.health_check import HealthCheckService
from core.services.query_engine import QueryEngine
from core.services.sync_orchestrator import DEFAULT_STORY_LIMIT, SyncOrchestrator
from core.services.test_management import TestManagementService
from core.services.token_service import TokenService

HTTP_STATUS_BY_KIND = {
    ErrorKind.MISSING_CREDENTIAL: 401,
    ErrorKind.AUTH_ERROR: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.NETWORK: 503,
    ErrorKind.UPSTREAM_ERROR: 502,
    ErrorKind.VALIDATION: 400,
}

Payload = Optional[Mapping[str, Any]]


def http_status_for(error: ADOIntegrationError) -> int:
    return HTTP_STATUS_BY_KIND.get(error.kind, 500)


def _optional_int(data: Payload, *names: str) -> Optional[int]:
    if not data:
        return None
    for name in names:
        value = data.get(name)
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            raise ValidationError(f"{name} must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must be an integer, got {value!r}")
    return None


def _optional_str(data: Payload, *names: str) -> Optional[str]:
    if not data:
        return None
    for name in names:
        value = data.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _optional_bool(data: Payload, name: str) -> Optional[bool]:
    if not data or data.get(name) is None:
        return None
    value = data[name]
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes")


def _id_list(data: Payload, name: str) -> Optional[List[Any]]:
    if not data or data.get(name) in (None, ""):
        return None
    value = data[name]
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, list):
        return value
    return [value]


class IntegrationOperations:
    """Request-level entry points used by the route handlers."""

    def __init__(
        self,
        defaults: ProcessDefaults,
        orchestrator: SyncOrchestrator,
        query_engine: QueryEngine,
        nodes: ClassificationNodeService,
        tokens: TokenService,
        health: HealthCheckService,
        test_management: Optional[TestManagementService] = None
    ):
        self._defaults = defaults
        self._orchestrator = orchestrator
        self._query = query_engine
        self._nodes = nodes
        self._tokens = tokens
        self._health = health
        self._test_management = test_management

    def credentials(self, headers: Payload, body: Payload = None, query: Payload = None) -> Credentials:
        return resolve(headers, body, self._defaults, query)

    def create_or_find_test_case(self, headers: Payload, body: Payload) -> Dict[str, Any]:
        body = body or {}
        request = FindOrCreateRequest(
            credentials=self.credentials(headers, body),
            title=_optional_str(body, "title") or "",
            description=body.get("description") or "",
            steps=TestStep.parse_list(body.get("steps")),
            project=_optional_str(body, "project", "projectName"),
            plan_id=_optional_int(body, "planId", "testPlanId"),
            suite_id=_optional_int(body, "suiteId", "testSuiteId"),
            assigned_to=_optional_str(body, "assignedTo"),
            priority=_optional_int(body, "priority"),
            area_path=_optional_str(body, "areaPath", "area"),
            iteration_path=_optional_str(body, "iterationPath", "iteration"),
            tags=_optional_str(body, "tags"),
            parent_id=_optional_int(body, "userStoryId", "parentId"),
        )
        return self._orchestrator.find_or_create_test_case(request).to_dict()

    def get_test_case(self, headers: Payload, test_case_id: int, query: Payload = None) -> Dict[str, Any]:
        credentials = self.credentials(headers, None, query)
        return {"success": True, "testCase": self._orchestrator.get_test_case(credentials, test_case_id).to_dict()}

    def update_test_case(self, headers: Payload, test_case_id: int, body: Payload) -> Dict[str, Any]:
        body = dict(body or {})
        credentials = self.credentials(headers, body)
        fields = body.get("fields")
        if not isinstance(fields, Mapping):
            raise ValidationError("fields must be an object")
        test_case = self._orchestrator.update_test_case(credentials, test_case_id, fields)
        return {"success": True, "testCase": test_case.to_dict()}

    def query_work_items(self, headers: Payload, body: Payload) -> Dict[str, Any]:
        body = body or {}
        credentials = self.credentials(headers, body)
        result = self._query.run_wiql(
            credentials,
            body.get("query") or "",
            top=_optional_int(body, "top", "$top"),
            time_precision=_optional_bool(body, "timePrecision"),
        )
        return {"success": True, "data": result}

    def list_user_stories(self, headers: Payload, query: Payload) -> Dict[str, Any]:
        credentials = self.credentials(headers, None, query)
        stories = self._orchestrator.list_user_stories(
            credentials,
            top=_optional_int(query, "top", "limit") or DEFAULT_STORY_LIMIT,
            area_path=_optional_str(query, "areaPath"),
            iteration_path=_optional_str(query, "iterationPath"),
        )
        return {"success": True, "userStories": [s.to_dict() for s in stories]}

    def get_story_test_cases(self, headers: Payload, story_id: int, query: Payload = None) -> Dict[str, Any]:
        credentials = self.credentials(headers, None, query)
        story = self._orchestrator.get_test_cases_for_story(credentials, story_id)
        return {"success": True, "userStory": story.to_dict()}

    def list_classification_nodes(self, headers: Payload, query: Payload) -> Dict[str, Any]:
        credentials = self.credentials(headers, None, query)
        nodes = self._nodes.list_nodes(
            credentials,
            ids=_id_list(query, "ids"),
            depth=_optional_int(query, "depth", "$depth"),
            error_policy=_optional_str(query, "errorPolicy"),
        )
        return {"success": True, "nodes": nodes}

    def get_classification_node(
        self,
        headers: Payload,
        structure_group: str,
        path: str = "",
        query: Payload = None
    ) -> Dict[str, Any]:
        credentials = self.credentials(headers, None, query)
        node = self._nodes.get_node(
            credentials, structure_group, path, depth=_optional_int(query, "depth", "$depth")
        )
        return {"success": True, "node": node}

    def create_classification_node(
        self,
        headers: Payload,
        structure_group: str,
        body: Payload,
        parent_path: str = ""
    ) -> Dict[str, Any]:
        body = body or {}
        credentials = self.credentials(headers, body)
        node = self._nodes.create_node(
            credentials,
            structure_group,
            _optional_str(body, "name") or "",
            parent_path=parent_path,
            attributes=body.get("attributes"),
        )
        return {"success": True, "node": node}

    def update_classification_node(
        self,
        headers: Payload,
        structure_group: str,
        path: str,
        body: Payload
    ) -> Dict[str, Any]:
        body = body or {}
        credentials = self.credentials(headers, body)
        fields = {k: body[k] for k in ("name", "attributes") if k in body}
        node = self._nodes.update_node(credentials, structure_group, path, fields)
        return {"success": True, "node": node}

    def list_tokens(self, headers: Payload, query: Payload) -> Dict[str, Any]:
        credentials = self.credentials(headers, None, query)
        ascending = _optional_bool(query, "isSortAscending")
        page = self._tokens.list_tokens(
            credentials,
            display_filter=_optional_str(query, "displayFilterOption") or "active",
            sort_by=_optional_str(query, "sortByOption"),
            ascending=True if ascending is None else ascending,
            continuation_token=_optional_str(query, "continuationToken"),
        )
        return {"success": True, **page.to_dict()}

    def get_token(self, headers: Payload, authorization_id: str, query: Payload = None) -> Dict[str, Any]:
        credentials = self.credentials(headers, None, query)
        return {"success": True, "patToken": self._tokens.get_token(credentials, authorization_id)}

    def update_token(self, headers: Payload, body: Payload) -> Dict[str, Any]:
        body = body or {}
        credentials = self.credentials(headers, body)
        token = self._tokens.update_token(
            credentials,
            _optional_str(body, "authorizationId") or "",
            display_name=body.get("displayName"),
            scope=body.get("scope"),
            valid_to=body.get("validTo"),
            all_orgs=_optional_bool(body, "allOrgs"),
        )
        return {"success": True, "patToken": token}

    def revoke_token(self, headers: Payload, authorization_id: str, query: Payload = None) -> Dict[str, Any]:
        credentials = self.credentials(headers, None, query)
        self._tokens.revoke_token(credentials, authorization_id)
        return {"success": True, "revoked": authorization_id}

    def _tests(self) -> TestManagementService:
        if self._test_management is None:
            raise ValidationError("Test management is not configured")
        return self._test_management

    def list_test_plans(self, headers: Payload, query: Payload = None) -> Dict[str, Any]:
        credentials = self.credentials(headers, None, query)
        plans = self._tests().list_plans(credentials, _optional_int(query, "top", "$top"))
        return {"success": True, "plans": plans}

    def list_test_suites(self, headers: Payload, plan_id: int, query: Payload = None) -> Dict[str, Any]:
        credentials = self.credentials(headers, None, query)
        return {"success": True, "suites": self._tests().list_suites(credentials, plan_id)}

    def list_test_points(
        self,
        headers: Payload,
        plan_id: int,
        suite_id: int,
        query: Payload = None
    ) -> Dict[str, Any]:
        credentials = self.credentials(headers, None, query)
        return {"success": True, "points": self._tests().list_points(credentials, plan_id, suite_id)}

    def add_test_cases_to_suite(self, headers: Payload, body: Payload) -> Dict[str, Any]:
        body = body or {}
        credentials = self.credentials(headers, body)
        raw_ids = _id_list(body, "testCaseIds") or []
        try:
            ids = [int(i) for i in raw_ids]
        except (TypeError, ValueError):
            raise ValidationError(f"testCaseIds must be integers, got {raw_ids!r}")
        added = self._tests().add_test_cases_to_suite(
            credentials,
            _optional_int(body, "planId", "testPlanId"),
            _optional_int(body, "suiteId", "testSuiteId"),
            ids,
        )
        return {"success": True, "added": added}

    def create_test_run(self, headers: Payload, body: Payload) -> Dict[str, Any]:
        body = body or {}
        credentials = self.credentials(headers, body)
        raw_points = _id_list(body, "pointIds") or []
        try:
            point_ids = [int(p) for p in raw_points]
        except (TypeError, ValueError):
            raise ValidationError(f"pointIds must be integers, got {raw_points!r}")
        run = self._tests().create_run(
            credentials,
            _optional_str(body, "name") or "",
            _optional_int(body, "planId", "testPlanId"),
            point_ids=point_ids,
            automated=bool(_optional_bool(body, "automated")),
        )
        return {"success": True, "run": run}

    def add_test_result(self, headers: Payload, run_id: int, body: Payload) -> Dict[str, Any]:
        body = body or {}
        credentials = self.credentials(headers, body)
        results = self._tests().add_result(
            credentials,
            run_id,
            _optional_str(body, "outcome") or "",
            test_case_id=_optional_int(body, "testCaseId"),
            test_point_id=_optional_int(body, "testPointId"),
            comment=_optional_str(body, "comment"),
            state=_optional_str(body, "state") or "Completed",
        )
        return {"success": True, "results": results}

    def health(self, headers: Payload, query: Payload = None) -> Dict[str, Any]:
        credentials = self.credentials(headers, None, query)
        include = _optional_bool(query, "includeTestPlans")
        report = self._health.run(credentials, include_test_plans=True if include is None else include)
        return report.to_dict()
