"""
Health check - read-only diagnostics of Azure DevOps access.

Runs one minimal call per capability and reports each outcome with the
classified error kind, so callers can tell a bad PAT from a missing scope
from an unreachable server.
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from core.domain.credentials import Credentials
from core.domain.errors import ADOIntegrationError, ErrorKind
from core.interfaces.repository import IWorkItemRepository, ITestPlanRepository

logger = logging.getLogger(__name__)

PROBE_QUERY = (
    "SELECT [System.Id] FROM WorkItems WHERE [System.TeamProject] = @project "
    "ORDER BY [System.ChangedDate] DESC"
)

CHECK_ORDER = (
    "connectivity",
    "authentication",
    "project_access",
    "work_item_query",
    "relation_expansion",
    "test_plan_access",
)


class CheckStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    WARN = "WARN"
    SKIP = "SKIP"


class OverallStatus(str, Enum):
    HEALTHY = "HEALTHY"
    DEGRADED = "DEGRADED"
    FAILED = "FAILED"


@dataclass
class CheckResult:
    name: str
    status: CheckStatus
    reason: Optional[ErrorKind] = None
    detail: str = ""
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "reason": self.reason.value if self.reason else None,
            "detail": self.detail,
            "durationMs": round(self.duration_ms, 2),
        }


@dataclass
class HealthReport:
    organization_url: str
    project: str
    pat_fingerprint: str
    checks: List[CheckResult] = field(default_factory=list)

    @property
    def status(self) -> OverallStatus:
        statuses = {c.status for c in self.checks}
        if CheckStatus.FAIL in statuses:
            return OverallStatus.FAILED
        if CheckStatus.WARN in statuses:
            return OverallStatus.DEGRADED
        return OverallStatus.HEALTHY

    def check(self, name: str) -> CheckResult:
        for result in self.checks:
            if result.name == name:
                return result
        raise KeyError(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.status != OverallStatus.FAILED,
            "status": self.status.value,
            "organizationUrl": self.organization_url,
            "project": self.project,
            "patFingerprint": self.pat_fingerprint,
            "checks": [c.to_dict() for c in self.checks],
        }


class HealthCheckService:
    """Runs the diagnostic checks in dependency order."""

    def __init__(
        self,
        work_items: IWorkItemRepository,
        test_plans: Optional[ITestPlanRepository] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """Initialize health check.

        Args:
            work_items: Work item repository
            test_plans: Test plan repository; None skips the test plan check
            clock: Monotonic clock for durations
        """
        self._work_items = work_items
        self._test_plans = test_plans
        self._clock = clock

    def _probe(self, name: str, call: Callable[[], Any]):
        started = self._clock()
        try:
            value = call()
            return value, None, (self._clock() - started) * 1000
        except ADOIntegrationError as e:
            logger.info(
                "health_check_failed",
                extra={"check": name, "error_kind": e.kind.value, "status_code": e.status_code}
            )
            return None, e, (self._clock() - started) * 1000

    def run(self, credentials: Credentials, include_test_plans: bool = True) -> HealthReport:
        report = HealthReport(
            organization_url=credentials.organization_url,
            project=credentials.project,
            pat_fingerprint=credentials.fingerprint,
        )
        checks = report.checks

        def skip_rest(reason: str) -> HealthReport:
            done = {c.name for c in checks}
            for name in CHECK_ORDER:
                if name not in done:
                    checks.append(CheckResult(name, CheckStatus.SKIP, detail=reason))
            return report

        # connectivity + authentication share one call
        _, error, ms = self._probe("connectivity", lambda: self._work_items.list_projects(credentials, top=1))
        if error is not None and error.kind in (ErrorKind.NETWORK, ErrorKind.UPSTREAM_ERROR, ErrorKind.NOT_FOUND):
            checks.append(CheckResult("connectivity", CheckStatus.FAIL, error.kind, error.message, ms))
            return skip_rest("connectivity failed")
        checks.append(CheckResult("connectivity", CheckStatus.PASS, detail="server responded", duration_ms=ms))

        if error is not None and error.kind == ErrorKind.AUTH_ERROR:
            checks.append(CheckResult("authentication", CheckStatus.FAIL, error.kind, error.message, ms))
            return skip_rest("authentication failed")
        if error is not None and error.kind == ErrorKind.FORBIDDEN:
            checks.append(CheckResult(
                "authentication", CheckStatus.WARN, error.kind,
                f"token accepted but cannot list projects: {error.message}", ms
            ))
        elif error is not None:
            checks.append(CheckResult("authentication", CheckStatus.FAIL, error.kind, error.message, ms))
            return skip_rest("authentication could not be verified")
        else:
            checks.append(CheckResult("authentication", CheckStatus.PASS, detail="token accepted", duration_ms=ms))

        if not credentials.project:
            checks.append(CheckResult("project_access", CheckStatus.FAIL, ErrorKind.VALIDATION, "no project configured"))
            return skip_rest("no project")
        project, error, ms = self._probe("project_access", lambda: self._work_items.get_project(credentials))
        if error is not None:
            checks.append(CheckResult("project_access", CheckStatus.FAIL, error.kind, error.message, ms))
            return skip_rest("project not accessible")
        checks.append(CheckResult(
            "project_access", CheckStatus.PASS, detail=f"project '{project.get('name', credentials.project)}'", duration_ms=ms
        ))

        result, error, ms = self._probe(
            "work_item_query", lambda: self._work_items.query_wiql(credentials, PROBE_QUERY, top=1)
        )
        sample_id = None
        if error is not None:
            checks.append(CheckResult("work_item_query", CheckStatus.FAIL, error.kind, error.message, ms))
        else:
            refs = (result or {}).get("workItems", [])
            sample_id = refs[0].get("id") if refs else None
            checks.append(CheckResult("work_item_query", CheckStatus.PASS, detail=f"{len(refs)} item(s)", duration_ms=ms))

        if sample_id is None:
            checks.append(CheckResult(
                "relation_expansion", CheckStatus.SKIP,
                detail="query failed" if error is not None else "no work items in project"
            ))
        else:
            item, error, ms = self._probe(
                "relation_expansion",
                lambda: self._work_items.get_work_item(credentials, sample_id, expand="Relations")
            )
            if error is not None:
                checks.append(CheckResult("relation_expansion", CheckStatus.FAIL, error.kind, error.message, ms))
            else:
                checks.append(CheckResult(
                    "relation_expansion", CheckStatus.PASS,
                    detail=f"work item {item.id} has {len(item.relations)} relation(s)", duration_ms=ms
                ))

        checks.append(self._check_test_plans(credentials, include_test_plans))

        logger.info(
            "health_check_completed",
            extra={"status": report.status.value, "pat_fingerprint": report.pat_fingerprint}
        )
        return report

    def _check_test_plans(self, credentials: Credentials, include: bool) -> CheckResult:
        if not include or self._test_plans is None:
            return CheckResult("test_plan_access", CheckStatus.SKIP, detail="not requested")
        plans, error, ms = self._probe("test_plan_access", lambda: self._test_plans.list_plans(credentials, top=1))
        if error is None:
            return CheckResult("test_plan_access", CheckStatus.PASS, detail=f"{len(plans)} plan(s)", duration_ms=ms)
        if error.kind == ErrorKind.NOT_FOUND:
            return CheckResult(
                "test_plan_access", CheckStatus.WARN, error.kind,
                "test plan API not available on this server", ms
            )
        return CheckResult("test_plan_access", CheckStatus.FAIL, error.kind, error.message, ms)
