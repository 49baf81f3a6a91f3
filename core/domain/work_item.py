"""
Work item entities as returned by the work item tracking API.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


TEST_CASE_TYPE = "Test Case"
TESTED_BY_RELATION = "Microsoft.VSTS.Common.TestedBy-Forward"


@dataclass(frozen=True)
class WorkItemRelation:
    """A typed link whose target id was parsed from the relation URL."""
    relation_type: str
    target_id: int


@dataclass
class WorkItem:
    """A work item with its raw fields and relation list."""
    id: int
    fields: Dict[str, Any] = field(default_factory=dict)
    relations: List[Dict[str, Any]] = field(default_factory=list)
    url: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "WorkItem":
        return cls(
            id=int(data["id"]),
            fields=data.get("fields") or {},
            relations=data.get("relations") or [],
            url=data.get("url"),
        )

    @property
    def title(self) -> str:
        return self.fields.get("System.Title", "")

    @property
    def work_item_type(self) -> str:
        return self.fields.get("System.WorkItemType", "")

    @property
    def state(self) -> str:
        return self.fields.get("System.State", "")

    @property
    def area_path(self) -> str:
        return self.fields.get("System.AreaPath", "")

    @property
    def iteration_path(self) -> str:
        return self.fields.get("System.IterationPath", "")

    @property
    def assigned_to(self) -> Optional[str]:
        value = self.fields.get("System.AssignedTo")
        if isinstance(value, dict):
            return value.get("uniqueName") or value.get("displayName")
        return value

    @property
    def is_test_case(self) -> bool:
        return self.work_item_type == TEST_CASE_TYPE


@dataclass
class LinkedTestCase:
    id: int
    title: str
    state: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "state": self.state}


@dataclass
class UserStory:
    """A requirement-category work item with its resolved test cases."""
    id: int
    title: str
    state: str = ""
    area_path: str = ""
    iteration_path: str = ""
    assigned_to: Optional[str] = None
    work_item_type: str = "User Story"
    test_cases: List[LinkedTestCase] = field(default_factory=list)

    @property
    def test_case_ids(self) -> List[int]:
        return [tc.id for tc in self.test_cases]

    @classmethod
    def from_work_item(cls, item: WorkItem) -> "UserStory":
        return cls(
            id=item.id,
            title=item.title,
            state=item.state,
            area_path=item.area_path,
            iteration_path=item.iteration_path,
            assigned_to=item.assigned_to,
            work_item_type=item.work_item_type or "User Story",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "state": self.state,
            "workItemType": self.work_item_type,
            "areaPath": self.area_path,
            "iterationPath": self.iteration_path,
            "assignedTo": self.assigned_to,
            "testCaseIds": self.test_case_ids,
            "testCases": [tc.to_dict() for tc in self.test_cases],
        }
