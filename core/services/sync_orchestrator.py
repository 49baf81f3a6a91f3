"""
Sync Orchestrator - find-or-create of test cases and composite story reads.

Find-or-create runs strictly search-then-create within one call. There is no
mutual exclusion across concurrent calls: two requests with the same title
can both miss in the search and both create.
"""
import copy
import logging
from typing import Any, Dict, List, Mapping, Optional

from core.domain.credentials import Credentials
from core.domain.errors import ADOIntegrationError, ValidationError
from core.domain.test_case import FindOrCreateRequest, SyncOutcome, TestCase
from core.domain.work_item import TEST_CASE_TYPE, LinkedTestCase, UserStory, WorkItem
from core.interfaces.repository import IWorkItemRepository, ITestPlanRepository
from core.services.cache import ResponseCache, make_cache_key
from core.services.query_engine import QueryEngine
from core.services.relation_resolver import RelationResolver, extract_linked_ids
from core.services.request_builder import (
    DESCRIPTION_FIELD,
    STEPS_FIELD,
    build_create_test_case,
    build_update_fields,
    html_to_text,
    parse_steps_xml,
)

logger = logging.getLogger(__name__)

LINKED_ITEM_FIELDS = ["System.Id", "System.Title", "System.State", "System.WorkItemType"]
DEFAULT_STORY_LIMIT = 500


class SyncOrchestrator:
    """Coordinates queries, builders and repositories for test case sync."""

    def __init__(
        self,
        work_items: IWorkItemRepository,
        test_plans: ITestPlanRepository,
        query_engine: Optional[QueryEngine] = None,
        relation_resolver: Optional[RelationResolver] = None,
        cache: Optional[ResponseCache] = None
    ):
        """Initialize orchestrator.

        Args:
            work_items: Work item repository
            test_plans: Test plan repository used for suite linking
            query_engine: WIQL engine; built over ``work_items`` if omitted
            relation_resolver: Relation hydration; built over ``work_items`` if omitted
            cache: Read cache for story listings; None disables caching
        """
        self._work_items = work_items
        self._test_plans = test_plans
        self._query = query_engine or QueryEngine(work_items)
        self._relations = relation_resolver or RelationResolver(work_items)
        self._cache = cache

    def find_or_create_test_case(self, request: FindOrCreateRequest) -> SyncOutcome:
        """Reuse the test case with the same title in the project, or create it.

        When both ``plan_id`` and ``suite_id`` are given, the resulting test
        case (new or reused) is then added to that suite. A failure there is
        reported in ``warnings`` and does not fail the call.

        Raises:
            ValidationError: On invalid input, before any network call
            ADOIntegrationError: If the search or the create fails
        """
        request.validate()
        project = request.effective_project
        credentials = request.credentials.with_project(project)
        title = request.title.strip()

        matches = self._query.find_existing(credentials, project, title, TEST_CASE_TYPE)
        if matches:
            test_case_id = matches[0]
            created = False
            if len(matches) > 1:
                logger.warning(
                    "multiple_test_cases_match_title",
                    extra={"project": project, "title": title, "ids": matches, "reused_id": test_case_id}
                )
            logger.info("test_case_reused", extra={"project": project, "test_case_id": test_case_id})
        else:
            test_case_id = self._create(credentials, request)
            created = True

        outcome = SyncOutcome(created=created, id=test_case_id)
        self._link_to_suite(credentials, request, outcome)
        return outcome

    def _create(self, credentials: Credentials, request: FindOrCreateRequest) -> int:
        parent_url = None
        if request.parent_id:
            parent_url = self._work_items.work_item_url(credentials, request.parent_id)

        document = build_create_test_case(
            request.to_test_case(),
            assigned_to=request.assigned_to,
            parent_url=parent_url,
        )
        item = self._work_items.create_work_item(credentials, TEST_CASE_TYPE, document)
        logger.info(
            "test_case_created",
            extra={"project": credentials.project, "test_case_id": item.id, "operations": len(document)}
        )
        return item.id

    def _link_to_suite(
        self,
        credentials: Credentials,
        request: FindOrCreateRequest,
        outcome: SyncOutcome
    ) -> None:
        if request.plan_id is None and request.suite_id is None:
            return
        if request.plan_id is None or request.suite_id is None:
            outcome.warnings.append(
                "Both planId and suiteId are required to add the test case to a suite; linking skipped"
            )
            return

        try:
            self._test_plans.add_test_cases_to_suite(
                credentials, request.plan_id, request.suite_id, [outcome.id]
            )
            outcome.linked = True
        except ADOIntegrationError as e:
            logger.warning(
                "suite_link_failed",
                extra={
                    "test_case_id": outcome.id,
                    "plan_id": request.plan_id,
                    "suite_id": request.suite_id,
                    "error_kind": e.kind.value,
                    "status_code": e.status_code,
                }
            )
            outcome.warnings.append(
                f"Test case {outcome.id} was not added to suite {request.suite_id} "
                f"of plan {request.plan_id} ({e.kind.value}): {e.message}"
            )

    def list_user_stories(
        self,
        credentials: Credentials,
        top: int = DEFAULT_STORY_LIMIT,
        area_path: Optional[str] = None,
        iteration_path: Optional[str] = None
    ) -> List[UserStory]:
        """Requirement-category items with the test cases linked to each.

        Served from the read cache when one is configured; failures are
        never cached.
        """
        if not credentials.project:
            raise ValidationError("Project is required")
        if top <= 0:
            raise ValidationError("top must be a positive integer")

        def load() -> List[UserStory]:
            return self._load_user_stories(credentials, top, area_path, iteration_path)

        if self._cache is None:
            return load()
        key = make_cache_key(credentials, "user_stories", top, area_path, iteration_path)
        # Callers get their own copy; the cached list stays as loaded.
        return copy.deepcopy(self._cache.get_or_load(key, load))

    def _load_user_stories(
        self,
        credentials: Credentials,
        top: int,
        area_path: Optional[str],
        iteration_path: Optional[str]
    ) -> List[UserStory]:
        result = self._query.find_user_stories(credentials, area_path, iteration_path)
        ids = result.ids if result.iteration_suffix else result.ids[:top]
        items = self._relations.hydrate(credentials, ids, expand="Relations")

        if result.iteration_suffix:
            suffix = result.iteration_suffix.lower()
            items = [i for i in items if i.iteration_path.lower().endswith(suffix)][:top]

        stories = self._attach_test_cases(credentials, items)
        logger.info(
            "user_stories_listed",
            extra={"project": credentials.project, "stories": len(stories)}
        )
        return stories

    def _attach_test_cases(self, credentials: Credentials, items: List[WorkItem]) -> List[UserStory]:
        linked_by_story = {item.id: extract_linked_ids(item.relations) for item in items}

        all_linked: List[int] = []
        seen = set()
        for linked in linked_by_story.values():
            for linked_id in linked:
                if linked_id not in seen:
                    seen.add(linked_id)
                    all_linked.append(linked_id)

        linked_items = self._relations.hydrate(credentials, all_linked, fields=LINKED_ITEM_FIELDS)
        test_cases = {
            li.id: LinkedTestCase(id=li.id, title=li.title, state=li.state)
            for li in linked_items if li.is_test_case
        }

        stories = []
        for item in items:
            story = UserStory.from_work_item(item)
            story.test_cases = [test_cases[i] for i in linked_by_story[item.id] if i in test_cases]
            stories.append(story)
        return stories

    def get_test_cases_for_story(self, credentials: Credentials, story_id: int) -> UserStory:
        """One story with its linked test cases resolved."""
        item = self._work_items.get_work_item(credentials, story_id, expand="Relations")
        return self._attach_test_cases(credentials, [item])[0]

    def get_test_case(self, credentials: Credentials, test_case_id: int) -> TestCase:
        """Read a test case back, with steps parsed from the steps XML.

        Raises:
            ValidationError: If the work item is not a test case
        """
        item = self._work_items.get_work_item(credentials, test_case_id)
        if not item.is_test_case:
            raise ValidationError(
                f"Work item {test_case_id} is a {item.work_item_type or 'work item'}, not a Test Case"
            )
        return self._to_test_case(item)

    def update_test_case(
        self,
        credentials: Credentials,
        test_case_id: int,
        fields: Mapping[str, Any]
    ) -> TestCase:
        document = build_update_fields(fields)
        item = self._work_items.update_work_item(credentials, test_case_id, document)
        logger.info(
            "test_case_updated",
            extra={"test_case_id": test_case_id, "operations": len(document)}
        )
        return self._to_test_case(item)

    @staticmethod
    def _to_test_case(item: WorkItem) -> TestCase:
        fields: Dict[str, Any] = item.fields
        return TestCase(
            id=item.id,
            title=item.title,
            description=html_to_text(fields.get(DESCRIPTION_FIELD, "")),
            steps=parse_steps_xml(fields.get(STEPS_FIELD)),
            assigned_to=item.assigned_to,
            priority=fields.get("Microsoft.VSTS.Common.Priority"),
            state=item.state or None,
            area_path=item.area_path or None,
            iteration_path=item.iteration_path or None,
            tags=fields.get("System.Tags"),
            url=item.url,
        )
