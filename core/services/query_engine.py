"""
WIQL query construction and execution.

Used for duplicate detection of test cases and for story discovery.
Result ids are returned in the order the server produced them.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from core.domain.credentials import Credentials
from core.domain.errors import ValidationError
from core.domain.work_item import TEST_CASE_TYPE
from core.interfaces.repository import IWorkItemRepository

logger = logging.getLogger(__name__)

INVALID_ITERATION_MARKERS = ("TF51011", "The specified iteration path does not exist")


def escape_wiql(value: Any) -> str:
    """Escape a value for use inside a single-quoted WIQL string literal."""
    return str(value).replace("'", "''")


def build_find_existing_query(project: str, title: str, type_filter: str = TEST_CASE_TYPE) -> str:
    """Exact-title lookup, oldest id first."""
    return (
        "SELECT [System.Id] FROM WorkItems "
        f"WHERE [System.TeamProject] = '{escape_wiql(project)}' "
        f"AND [System.WorkItemType] = '{escape_wiql(type_filter)}' "
        f"AND [System.Title] = '{escape_wiql(title)}' "
        "ORDER BY [System.Id] ASC"
    )


def build_user_story_query(
    project: str,
    area_path: Optional[str] = None,
    iteration_path: Optional[str] = None
) -> str:
    """Requirement-category items, most recently changed first.

    ``iteration_path`` starting with ``@`` is a WIQL macro such as
    ``@CurrentIteration`` and is emitted unquoted.
    """
    clauses = [
        f"[System.TeamProject] = '{escape_wiql(project)}'",
        "[System.WorkItemType] IN GROUP 'Microsoft.RequirementCategory'",
    ]
    if area_path:
        clauses.append(f"[System.AreaPath] UNDER '{escape_wiql(area_path)}'")
    if iteration_path:
        if iteration_path.strip().startswith("@"):
            clauses.append(f"[System.IterationPath] = {iteration_path.strip()}")
        else:
            clauses.append(f"[System.IterationPath] UNDER '{escape_wiql(iteration_path)}'")
    return (
        "SELECT [System.Id] FROM WorkItems WHERE "
        + " AND ".join(clauses)
        + " ORDER BY [System.ChangedDate] DESC"
    )


def is_invalid_iteration_error(error: ValidationError) -> bool:
    return any(marker in (error.message or "") for marker in INVALID_ITERATION_MARKERS)


@dataclass
class StoryQueryResult:
    """Story ids plus the iteration suffix to filter on when the server rejected the path."""
    ids: List[int]
    iteration_suffix: Optional[str] = None


class QueryEngine:
    """Builds and executes WIQL queries."""

    def __init__(self, work_items: IWorkItemRepository):
        self._work_items = work_items

    def run_wiql(
        self,
        credentials: Credentials,
        query: str,
        top: Optional[int] = None,
        time_precision: Optional[bool] = None
    ) -> Dict[str, Any]:
        """Execute a caller-supplied WIQL query.

        Raises:
            ValidationError: If the query is blank or ``top`` is not positive
        """
        if not query or not query.strip():
            raise ValidationError("WIQL query is required")
        if top is not None and top <= 0:
            raise ValidationError("top must be a positive integer")
        return self._work_items.query_wiql(credentials, query, top=top, time_precision=time_precision)

    def query_ids(self, credentials: Credentials, query: str, top: Optional[int] = None) -> List[int]:
        result = self.run_wiql(credentials, query, top=top)
        return [int(ref["id"]) for ref in result.get("workItems", []) if "id" in ref]

    def find_existing(
        self,
        credentials: Credentials,
        project: str,
        title: str,
        type_filter: str = TEST_CASE_TYPE
    ) -> List[int]:
        """Ids of work items whose title matches exactly.

        An empty list means no duplicate exists.
        """
        if not title or not title.strip():
            raise ValidationError("Title is required for duplicate detection")
        query = build_find_existing_query(project, title.strip(), type_filter)
        ids = self.query_ids(credentials.with_project(project), query)
        logger.debug(
            "find_existing",
            extra={"project": project, "type": type_filter, "matches": len(ids)}
        )
        return ids

    def find_user_stories(
        self,
        credentials: Credentials,
        area_path: Optional[str] = None,
        iteration_path: Optional[str] = None
    ) -> StoryQueryResult:
        """Story ids, retrying without the iteration clause if the server rejects it.

        When the fallback is taken the result carries the last segment of the
        iteration path so callers can filter hydrated stories client-side.
        """
        query = build_user_story_query(credentials.project, area_path, iteration_path)
        try:
            return StoryQueryResult(self.query_ids(credentials, query))
        except ValidationError as error:
            if not iteration_path or not is_invalid_iteration_error(error):
                raise
            logger.warning(
                "iteration_path_rejected",
                extra={"iteration_path": iteration_path, "fallback": "client_side_filter"}
            )

        query = build_user_story_query(credentials.project, area_path, None)
        suffix = iteration_path.replace("/", "\\").rstrip("\\").split("\\")[-1]
        return StoryQueryResult(self.query_ids(credentials, query), iteration_suffix=suffix)
