"""
Unit tests for the health check service.
"""
import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from core.domain.errors import (
    AuthError,
    ErrorKind,
    Forbidden,
    NetworkUnreachable,
    NotFound,
)
from core.domain.work_item import WorkItem
from core.services.health_check import CheckStatus, HealthCheckService, OverallStatus
from tests.fakes import PAT, make_credentials


@pytest.fixture
def work_items():
    repo = Mock()
    repo.list_projects.return_value = [{"id": "p-1", "name": "Fabrikam"}]
    repo.get_project.return_value = {"id": "p-1", "name": "Fabrikam"}
    repo.query_wiql.return_value = {"workItems": [{"id": 7}]}
    repo.get_work_item.return_value = WorkItem(id=7, relations=[{"rel": "x", "url": "u/1"}])
    return repo


@pytest.fixture
def plans_repo():
    repo = Mock()
    repo.list_plans.return_value = [{"id": 10}]
    return repo


class TestHealthCheck:
    """Test check ordering and classification."""

    def test_all_pass(self, work_items, plans_repo):
        """Test a healthy environment."""
        report = HealthCheckService(work_items, plans_repo).run(make_credentials())

        assert report.status == OverallStatus.HEALTHY
        assert [c.name for c in report.checks] == [
            "connectivity", "authentication", "project_access",
            "work_item_query", "relation_expansion", "test_plan_access",
        ]
        assert all(c.status == CheckStatus.PASS for c in report.checks)
        work_items.get_work_item.assert_called_once_with(make_credentials(), 7, expand="Relations")

    def test_bad_pat(self, work_items, plans_repo):
        """Test an invalid token fails authentication and skips the rest."""
        work_items.list_projects.side_effect = AuthError("TF400813", status_code=401)

        report = HealthCheckService(work_items, plans_repo).run(make_credentials())

        assert report.status == OverallStatus.FAILED
        assert report.check("connectivity").status == CheckStatus.PASS
        assert report.check("authentication").reason == ErrorKind.AUTH_ERROR
        assert report.check("work_item_query").status == CheckStatus.SKIP
        work_items.query_wiql.assert_not_called()

    def test_unreachable_host(self, work_items, plans_repo):
        """Test DNS failure fails connectivity."""
        work_items.list_projects.side_effect = NetworkUnreachable("cannot resolve")

        report = HealthCheckService(work_items, plans_repo).run(make_credentials())

        assert report.check("connectivity").status == CheckStatus.FAIL
        assert report.check("connectivity").reason == ErrorKind.NETWORK
        assert report.check("authentication").status == CheckStatus.SKIP

    def test_missing_scope_degrades(self, work_items, plans_repo):
        """Test a 403 on project listing is a warning, not a failure."""
        work_items.list_projects.side_effect = Forbidden("missing scope", status_code=403)
        report = HealthCheckService(work_items, plans_repo).run(make_credentials())
        assert report.status == OverallStatus.DEGRADED
        assert report.check("authentication").status == CheckStatus.WARN

    def test_test_plan_api_missing_warns(self, work_items, plans_repo):
        """Test a 404 on test plans is reported as a warning."""
        plans_repo.list_plans.side_effect = NotFound("no such api", status_code=404)
        report = HealthCheckService(work_items, plans_repo).run(make_credentials())
        assert report.check("test_plan_access").status == CheckStatus.WARN
        assert report.status == OverallStatus.DEGRADED

    def test_empty_project_skips_relation_check(self, work_items, plans_repo):
        """Test relation expansion is skipped when no item exists."""
        work_items.query_wiql.return_value = {"workItems": []}
        report = HealthCheckService(work_items, plans_repo).run(make_credentials())
        assert report.check("relation_expansion").status == CheckStatus.SKIP
        assert report.status == OverallStatus.HEALTHY

    def test_no_project(self, work_items):
        """Test a missing project fails project access."""
        report = HealthCheckService(work_items).run(make_credentials(project=""))
        assert report.check("project_access").status == CheckStatus.FAIL
        work_items.get_project.assert_not_called()

    def test_test_plans_not_requested(self, work_items, plans_repo):
        """Test the test plan check can be skipped."""
        report = HealthCheckService(work_items, plans_repo).run(make_credentials(), include_test_plans=False)
        assert report.check("test_plan_access").status == CheckStatus.SKIP
        plans_repo.list_plans.assert_not_called()

    def test_report_never_contains_pat(self, work_items, plans_repo):
        """Test the serialized report carries only a fingerprint."""
        data = HealthCheckService(work_items, plans_repo).run(make_credentials()).to_dict()
        assert PAT not in str(data)
        assert data["patFingerprint"] == make_credentials().fingerprint
        assert data["success"] is True
