"""
Repository interfaces for data access abstraction.

Following the Repository pattern to abstract Azure DevOps endpoints from the
services that orchestrate them. Every method takes the per-request
Credentials; implementations hold no identity of their own.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from core.domain.credentials import Credentials
from core.domain.patch import PatchDocument
from core.domain.work_item import WorkItem


class IWorkItemRepository(ABC):
    """Interface for work item and WIQL access."""

    @abstractmethod
    def query_wiql(
        self,
        credentials: Credentials,
        query: str,
        top: Optional[int] = None,
        time_precision: Optional[bool] = None
    ) -> Dict[str, Any]:
        """Execute a WIQL query.

        Returns:
            Raw query result; ``workItems`` holds ``{id, url}`` references
            in the order the server returned them
        """
        pass

    @abstractmethod
    def get_work_item(
        self,
        credentials: Credentials,
        work_item_id: int,
        expand: Optional[str] = None
    ) -> WorkItem:
        pass

    @abstractmethod
    def get_work_items(
        self,
        credentials: Credentials,
        ids: List[int],
        fields: Optional[List[str]] = None,
        expand: Optional[str] = None
    ) -> List[WorkItem]:
        """Fetch up to 200 work items in one call, in the order of ``ids``."""
        pass

    @abstractmethod
    def create_work_item(
        self,
        credentials: Credentials,
        work_item_type: str,
        document: PatchDocument
    ) -> WorkItem:
        pass

    @abstractmethod
    def update_work_item(
        self,
        credentials: Credentials,
        work_item_id: int,
        document: PatchDocument
    ) -> WorkItem:
        pass

    @abstractmethod
    def work_item_url(self, credentials: Credentials, work_item_id: int) -> str:
        """API URL of a work item, as used in relation links."""
        pass

    @abstractmethod
    def list_projects(self, credentials: Credentials, top: Optional[int] = None) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def get_project(self, credentials: Credentials) -> Dict[str, Any]:
        pass


class ITestPlanRepository(ABC):
    """Interface for test plans, suites, points, runs and results."""

    @abstractmethod
    def add_test_cases_to_suite(
        self,
        credentials: Credentials,
        plan_id: int,
        suite_id: int,
        test_case_ids: List[int]
    ) -> List[Dict[str, Any]]:
        """Add test cases to a static suite.

        Returns:
            Suite test case entries created by the server
        """
        pass

    @abstractmethod
    def list_plans(self, credentials: Credentials, top: Optional[int] = None) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def get_plan(self, credentials: Credentials, plan_id: int) -> Dict[str, Any]:
        pass

    @abstractmethod
    def list_suites(self, credentials: Credentials, plan_id: int) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def list_points(self, credentials: Credentials, plan_id: int, suite_id: int) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def create_run(self, credentials: Credentials, run: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    def add_results(
        self,
        credentials: Credentials,
        run_id: int,
        results: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        pass


class IClassificationNodeRepository(ABC):
    """Interface for area and iteration nodes."""

    @abstractmethod
    def get_node(
        self,
        credentials: Credentials,
        structure_group: str,
        path: str = "",
        depth: Optional[int] = None
    ) -> Dict[str, Any]:
        pass

    @abstractmethod
    def get_nodes(
        self,
        credentials: Credentials,
        ids: List[int],
        depth: Optional[int] = None,
        error_policy: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def get_root_nodes(self, credentials: Credentials, depth: Optional[int] = None) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def create_node(
        self,
        credentials: Credentials,
        structure_group: str,
        parent_path: str,
        body: Dict[str, Any]
    ) -> Dict[str, Any]:
        pass

    @abstractmethod
    def update_node(
        self,
        credentials: Credentials,
        structure_group: str,
        path: str,
        body: Dict[str, Any]
    ) -> Dict[str, Any]:
        pass


class ITokenRepository(ABC):
    """Interface for personal access token lifecycle endpoints."""

    @abstractmethod
    def list_tokens(self, credentials: Credentials, params: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    def get_token(self, credentials: Credentials, authorization_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def update_token(self, credentials: Credentials, body: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    def revoke_token(self, credentials: Credentials, authorization_id: str) -> None:
        pass
