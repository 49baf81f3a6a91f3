"""
Work item relation resolution.

Relations come back from the API as ``{rel, url, attributes}`` where the
target id is only present as the last path segment of ``url``.
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from core.domain.credentials import Credentials
from core.domain.work_item import WorkItem, WorkItemRelation
from core.interfaces.repository import IWorkItemRepository

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 200

_TRAILING_ID = re.compile(r"/(\d+)/?$")


def parse_relation_target(url: Any) -> Optional[int]:
    """Extract the trailing integer id from a relation URL.

    Returns:
        The id, or None for anything that is not a URL ending in a positive integer
    """
    if not isinstance(url, str) or not url:
        return None
    path = url.split("?", 1)[0].split("#", 1)[0]
    match = _TRAILING_ID.search(path)
    if not match:
        return None
    value = int(match.group(1))
    return value if value > 0 else None


def parse_relation(relation: Any) -> Optional[WorkItemRelation]:
    if not isinstance(relation, dict):
        return None
    target_id = parse_relation_target(relation.get("url"))
    if target_id is None:
        return None
    return WorkItemRelation(relation_type=str(relation.get("rel") or ""), target_id=target_id)


def extract_linked_ids(
    relations: Optional[Iterable[Dict[str, Any]]],
    relation_types: Optional[Iterable[str]] = None
) -> List[int]:
    """Linked work item ids, deduplicated in first-seen order.

    Malformed entries are skipped; they never fail the batch.

    Args:
        relations: Relation objects as returned by the API
        relation_types: If given, only relations whose ``rel`` is listed are kept
    """
    allowed = set(relation_types) if relation_types is not None else None
    ids: List[int] = []
    seen = set()
    skipped = 0
    for relation in relations or []:
        parsed = parse_relation(relation)
        if parsed is None:
            skipped += 1
            continue
        if allowed is not None and parsed.relation_type not in allowed:
            continue
        if parsed.target_id not in seen:
            seen.add(parsed.target_id)
            ids.append(parsed.target_id)
    if skipped:
        logger.debug("relations_skipped", extra={"skipped": skipped})
    return ids


def chunk(ids: List[int], size: int) -> List[List[int]]:
    return [ids[i:i + size] for i in range(0, len(ids), size)]


class RelationResolver:
    """Hydrates linked work items in batches no larger than the API cap."""

    def __init__(self, work_items: IWorkItemRepository, batch_size: int = MAX_BATCH_SIZE):
        self._validate_batch_size(batch_size)
        self._work_items = work_items
        self._batch_size = batch_size

    @staticmethod
    def _validate_batch_size(batch_size: int) -> None:
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {batch_size}")

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def hydrate(
        self,
        credentials: Credentials,
        ids: List[int],
        batch_size: Optional[int] = None,
        expand: Optional[str] = None,
        fields: Optional[List[str]] = None
    ) -> List[WorkItem]:
        """Fetch work items for ``ids``, one request per chunk, preserving input order.

        Ids the server omits (deleted or inaccessible) are absent from the result.
        """
        size = batch_size if batch_size is not None else self._batch_size
        self._validate_batch_size(size)

        items: List[WorkItem] = []
        for batch in chunk(list(ids), size):
            fetched = self._work_items.get_work_items(credentials, batch, fields=fields, expand=expand)
            by_id = {item.id: item for item in fetched}
            items.extend(by_id[i] for i in batch if i in by_id)
        return items
