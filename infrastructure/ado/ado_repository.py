"""
Azure DevOps repository implementations.

Implements the work item and test plan repository interfaces on top of
ADOHttpClient. Failures propagate as classified ADOIntegrationError
subclasses; nothing here retries or reinterprets them.
"""
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from core.config.deployment import ApiVersions
from core.domain.credentials import Credentials
from core.domain.errors import ValidationError
from core.domain.patch import PatchDocument
from core.domain.work_item import WorkItem
from core.interfaces.repository import IWorkItemRepository, ITestPlanRepository
from .http_client import ADOHttpClient, JSON_PATCH_CONTENT_TYPE

MAX_BATCH_IDS = 200


def project_segment(credentials: Credentials) -> str:
    """URL-encoded project name.

    Raises:
        ValidationError: If the credentials carry no project
    """
    if not credentials.project:
        raise ValidationError("Project is required for this operation")
    return quote(credentials.project, safe="")


class ADOWorkItemRepository(IWorkItemRepository):
    """Azure DevOps implementation of work item and WIQL access."""

    def __init__(self, client: ADOHttpClient, api_versions: Optional[ApiVersions] = None):
        """Initialize repository.

        Args:
            client: Transport shared across requests
            api_versions: API versions for this deployment
        """
        self._client = client
        self._versions = api_versions or ApiVersions()

    def query_wiql(
        self,
        credentials: Credentials,
        query: str,
        top: Optional[int] = None,
        time_precision: Optional[bool] = None
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if top is not None:
            params['$top'] = top
        if time_precision is not None:
            params['timePrecision'] = str(bool(time_precision)).lower()
        result = self._client.send(
            'POST',
            f"{project_segment(credentials)}/_apis/wit/wiql",
            credentials,
            self._versions.api_version,
            params=params,
            body={"query": query},
        )
        return result or {}

    def get_work_item(
        self,
        credentials: Credentials,
        work_item_id: int,
        expand: Optional[str] = None
    ) -> WorkItem:
        params = {'$expand': expand} if expand else None
        data = self._client.send(
            'GET',
            f"_apis/wit/workitems/{int(work_item_id)}",
            credentials,
            self._versions.api_version,
            params=params,
        )
        return WorkItem.from_api(data)

    def get_work_items(
        self,
        credentials: Credentials,
        ids: List[int],
        fields: Optional[List[str]] = None,
        expand: Optional[str] = None
    ) -> List[WorkItem]:
        """Fetch work items through the batch endpoint.

        Deleted or inaccessible ids are omitted instead of failing the
        batch. The batch API rejects ``fields`` combined with ``$expand``,
        so ``fields`` is ignored when ``expand`` is given.

        Raises:
            ValueError: If more than 200 ids are requested
        """
        if not ids:
            return []
        if len(ids) > MAX_BATCH_IDS:
            raise ValueError(f"At most {MAX_BATCH_IDS} ids per batch, got {len(ids)}")

        body: Dict[str, Any] = {"ids": [int(i) for i in ids], "errorPolicy": "Omit"}
        if expand:
            body["$expand"] = expand
        elif fields:
            body["fields"] = list(fields)

        data = self._client.send(
            'POST',
            "_apis/wit/workitemsbatch",
            credentials,
            self._versions.api_version,
            body=body,
        ) or {}
        return [WorkItem.from_api(item) for item in data.get('value', []) if item]

    def create_work_item(
        self,
        credentials: Credentials,
        work_item_type: str,
        document: PatchDocument
    ) -> WorkItem:
        data = self._client.send(
            'POST',
            f"{project_segment(credentials)}/_apis/wit/workitems/${quote(work_item_type)}",
            credentials,
            self._versions.api_version,
            body=document.to_json(),
            content_type=JSON_PATCH_CONTENT_TYPE,
        )
        return WorkItem.from_api(data)

    def update_work_item(
        self,
        credentials: Credentials,
        work_item_id: int,
        document: PatchDocument
    ) -> WorkItem:
        data = self._client.send(
            'PATCH',
            f"_apis/wit/workitems/{int(work_item_id)}",
            credentials,
            self._versions.api_version,
            body=document.to_json(),
            content_type=JSON_PATCH_CONTENT_TYPE,
        )
        return WorkItem.from_api(data)

    def work_item_url(self, credentials: Credentials, work_item_id: int) -> str:
        return f"{credentials.organization_url}/_apis/wit/workItems/{int(work_item_id)}"

    def list_projects(self, credentials: Credentials, top: Optional[int] = None) -> List[Dict[str, Any]]:
        params = {'$top': top} if top else None
        data = self._client.send(
            'GET', "_apis/projects", credentials, self._versions.api_version, params=params
        ) or {}
        return data.get('value', [])

    def get_project(self, credentials: Credentials) -> Dict[str, Any]:
        return self._client.send(
            'GET',
            f"_apis/projects/{project_segment(credentials)}",
            credentials,
            self._versions.api_version,
        ) or {}


class ADOTestPlanRepository(ITestPlanRepository):
    """Azure DevOps implementation of test plan access.

    Plans, suites and points use the ``testplan`` API when the deployment
    has one and fall back to the legacy ``test`` area otherwise. Suite
    membership, runs and results always use the legacy area, which both
    cloud and on-premises servers serve.
    """

    def __init__(self, client: ADOHttpClient, api_versions: Optional[ApiVersions] = None):
        self._client = client
        self._versions = api_versions or ApiVersions()

    @property
    def has_testplan_api(self) -> bool:
        return self._versions.testplan_api_version is not None

    def _get_list(self, credentials: Credentials, path: str, version: str,
                  params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        data = self._client.send('GET', path, credentials, version, params=params) or {}
        return data.get('value', [])

    def add_test_cases_to_suite(
        self,
        credentials: Credentials,
        plan_id: int,
        suite_id: int,
        test_case_ids: List[int]
    ) -> List[Dict[str, Any]]:
        if not test_case_ids:
            raise ValidationError("At least one test case id is required")
        ids = ",".join(str(int(i)) for i in test_case_ids)
        data = self._client.send(
            'POST',
            f"{project_segment(credentials)}/_apis/test/Plans/{int(plan_id)}/suites/{int(suite_id)}/testcases/{ids}",
            credentials,
            self._versions.api_version,
        ) or {}
        return data.get('value', [])

    def list_plans(self, credentials: Credentials, top: Optional[int] = None) -> List[Dict[str, Any]]:
        project = project_segment(credentials)
        if self.has_testplan_api:
            plans = self._get_list(
                credentials, f"{project}/_apis/testplan/plans", self._versions.testplan_api_version
            )
            return plans[:top] if top else plans
        params = {'$top': top} if top else None
        return self._get_list(credentials, f"{project}/_apis/test/plans", self._versions.api_version, params)

    def get_plan(self, credentials: Credentials, plan_id: int) -> Dict[str, Any]:
        project = project_segment(credentials)
        if self.has_testplan_api:
            path = f"{project}/_apis/testplan/plans/{int(plan_id)}"
            version = self._versions.testplan_api_version
        else:
            path = f"{project}/_apis/test/plans/{int(plan_id)}"
            version = self._versions.api_version
        return self._client.send('GET', path, credentials, version) or {}

    def list_suites(self, credentials: Credentials, plan_id: int) -> List[Dict[str, Any]]:
        project = project_segment(credentials)
        if self.has_testplan_api:
            return self._get_list(
                credentials,
                f"{project}/_apis/testplan/Plans/{int(plan_id)}/suites",
                self._versions.testplan_api_version,
            )
        return self._get_list(
            credentials, f"{project}/_apis/test/plans/{int(plan_id)}/suites", self._versions.api_version
        )

    def list_points(self, credentials: Credentials, plan_id: int, suite_id: int) -> List[Dict[str, Any]]:
        project = project_segment(credentials)
        if self.has_testplan_api:
            return self._get_list(
                credentials,
                f"{project}/_apis/testplan/Plans/{int(plan_id)}/Suites/{int(suite_id)}/TestPoint",
                self._versions.testplan_api_version,
            )
        return self._get_list(
            credentials,
            f"{project}/_apis/test/Plans/{int(plan_id)}/Suites/{int(suite_id)}/points",
            self._versions.api_version,
        )

    def create_run(self, credentials: Credentials, run: Dict[str, Any]) -> Dict[str, Any]:
        return self._client.send(
            'POST',
            f"{project_segment(credentials)}/_apis/test/runs",
            credentials,
            self._versions.api_version,
            body=run,
        ) or {}

    def add_results(
        self,
        credentials: Credentials,
        run_id: int,
        results: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        data = self._client.send(
            'POST',
            f"{project_segment(credentials)}/_apis/test/runs/{int(run_id)}/results",
            credentials,
            self._versions.api_version,
            body=results,
        ) or {}
        return data.get('value', [])
