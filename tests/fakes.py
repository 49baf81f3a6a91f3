"""
Test doubles shared by the unit and integration suites.

No test touches the network: the transport is exercised through FakeSession
and the services through the in-memory repositories below.
"""
import json
import re
from typing import Any, Dict, List, Optional

import requests

from core.domain.credentials import Credentials
from core.domain.errors import ADOIntegrationError, NotFound
from core.domain.patch import PatchDocument
from core.domain.work_item import WorkItem
from core.interfaces.repository import IWorkItemRepository, ITestPlanRepository

ORG_URL = "https://dev.azure.com/contoso"
PROJECT = "Fabrikam"
PAT = "s3cr3t-pat-value-0123456789"


def make_credentials(project: str = PROJECT) -> Credentials:
    return Credentials(organization_url=ORG_URL, personal_access_token=PAT, project=project)


def make_response(
    status_code: int = 200,
    body: Any = None,
    text: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    reason: str = ""
) -> requests.Response:
    """Build a real requests.Response with the given payload."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    if body is not None:
        response._content = json.dumps(body).encode("utf-8")
        response.headers["Content-Type"] = "application/json; charset=utf-8"
    elif text is not None:
        response._content = text.encode("utf-8")
        response.headers["Content-Type"] = "text/plain"
    else:
        response._content = b""
    for key, value in (headers or {}).items():
        response.headers[key] = value
    return response


class FakeSession:
    """Stands in for requests.Session; replays queued responses or exceptions."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls: List[Dict[str, Any]] = []

    def queue(self, *outcomes) -> None:
        self.outcomes.extend(outcomes)

    def request(self, method, url, headers=None, params=None, json=None, timeout=None):
        self.calls.append({
            "method": method,
            "url": url,
            "headers": dict(headers or {}),
            "params": dict(params or {}),
            "json": json,
            "timeout": timeout,
        })
        if not self.outcomes:
            raise AssertionError(f"Unexpected request: {method} {url}")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


_TITLE_CLAUSE = re.compile(r"\[System\.Title\] = '((?:[^']|'')*)'")
_TYPE_CLAUSE = re.compile(r"\[System\.WorkItemType\] = '((?:[^']|'')*)'")


class InMemoryWorkItemRepository(IWorkItemRepository):
    """Minimal work item store that understands the queries the services issue."""

    def __init__(self, start_id: int = 1000):
        self.items: Dict[int, WorkItem] = {}
        self.next_id = start_id
        self.created_documents: List[PatchDocument] = []
        self.batch_calls: List[List[int]] = []
        self.wiql_queries: List[str] = []
        self.fail_wiql: Optional[ADOIntegrationError] = None

    def add(self, work_item_type: str, title: str, relations=None, **fields) -> WorkItem:
        self.next_id += 1
        item = WorkItem(
            id=self.next_id,
            fields={"System.WorkItemType": work_item_type, "System.Title": title, **fields},
            relations=list(relations or []),
            url=f"{ORG_URL}/_apis/wit/workItems/{self.next_id}",
        )
        self.items[item.id] = item
        return item

    def query_wiql(self, credentials, query, top=None, time_precision=None):
        self.wiql_queries.append(query)
        if self.fail_wiql is not None:
            raise self.fail_wiql
        title_match = _TITLE_CLAUSE.search(query)
        type_match = _TYPE_CLAUSE.search(query)
        matches = []
        for item in sorted(self.items.values(), key=lambda i: i.id):
            if title_match and item.title != title_match.group(1).replace("''", "'"):
                continue
            if type_match and item.work_item_type != type_match.group(1).replace("''", "'"):
                continue
            if "RequirementCategory" in query and item.work_item_type != "User Story":
                continue
            matches.append({"id": item.id, "url": item.url})
        if top:
            matches = matches[:top]
        return {"queryType": "flat", "workItems": matches}

    def get_work_item(self, credentials, work_item_id, expand=None):
        if work_item_id not in self.items:
            raise NotFound(f"TF401232: Work item {work_item_id} does not exist", status_code=404)
        return self.items[work_item_id]

    def get_work_items(self, credentials, ids, fields=None, expand=None):
        assert len(ids) <= 200
        self.batch_calls.append(list(ids))
        return [self.items[i] for i in ids if i in self.items]

    def create_work_item(self, credentials, work_item_type, document):
        self.created_documents.append(document)
        fields = {}
        for operation in document:
            if operation.path.startswith("/fields/"):
                fields[operation.path[len("/fields/"):]] = operation.value
        title = fields.pop("System.Title")
        return self.add(work_item_type, title, **fields)

    def update_work_item(self, credentials, work_item_id, document):
        item = self.get_work_item(credentials, work_item_id)
        for operation in document:
            name = operation.path[len("/fields/"):]
            if operation.op.value == "remove":
                item.fields.pop(name, None)
            else:
                item.fields[name] = operation.value
        return item

    def work_item_url(self, credentials, work_item_id):
        return f"{credentials.organization_url}/_apis/wit/workItems/{work_item_id}"

    def list_projects(self, credentials, top=None):
        return [{"id": "p-1", "name": PROJECT}]

    def get_project(self, credentials):
        return {"id": "p-1", "name": credentials.project}


class FakeTestPlanRepository(ITestPlanRepository):
    """Records suite links; raises ``link_error`` when set."""

    def __init__(self, link_error: Optional[ADOIntegrationError] = None):
        self.link_error = link_error
        self.links: List[Dict[str, Any]] = []
        self.plans_error: Optional[ADOIntegrationError] = None

    def add_test_cases_to_suite(self, credentials, plan_id, suite_id, test_case_ids):
        if self.link_error is not None:
            raise self.link_error
        self.links.append({"plan_id": plan_id, "suite_id": suite_id, "ids": list(test_case_ids)})
        return [{"testCase": {"id": str(i)}} for i in test_case_ids]

    def list_plans(self, credentials, top=None):
        if self.plans_error is not None:
            raise self.plans_error
        return [{"id": 10, "name": "Release 1"}]

    def get_plan(self, credentials, plan_id):
        return {"id": plan_id}

    def list_suites(self, credentials, plan_id):
        return []

    def list_points(self, credentials, plan_id, suite_id):
        return []

    def create_run(self, credentials, run):
        return {"id": 1, **run}

    def add_results(self, credentials, run_id, results):
        return results
