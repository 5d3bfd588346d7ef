"""
Work queue for screenshot extraction.

The QueueStore holds WorkItems in insertion order. Items are immutable
values: every status change stores a new WorkItem in place of the old one,
so lists handed out by ``select_by_status`` or ``snapshot`` never change
after the fact.

Status lifecycle::

    PENDING -> IN_FLIGHT -> DONE
                         -> FAILED
    IN_FLIGHT -> PENDING   (only when a cancelled run releases an item
                            before its request was sent)
"""

import logging
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from .models.profile import ExtractionRecord

logger = logging.getLogger(__name__)


class ItemStatus(str, Enum):
    """Processing status of a queued screenshot."""
    PENDING = "PENDING"
    IN_FLIGHT = "IN_FLIGHT"
    DONE = "DONE"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.DONE, ItemStatus.FAILED)


ALLOWED_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.PENDING: frozenset({ItemStatus.IN_FLIGHT}),
    ItemStatus.IN_FLIGHT: frozenset(
        {ItemStatus.DONE, ItemStatus.FAILED, ItemStatus.PENDING}
    ),
    ItemStatus.DONE: frozenset(),
    ItemStatus.FAILED: frozenset(),
}


class InvalidTransitionError(ValueError):
    """Raised when a status change would break the item lifecycle."""

    pass


@dataclass(frozen=True)
class WorkItem:
    """One queued screenshot and its processing state."""
    id: str
    source_label: str
    status: ItemStatus = ItemStatus.PENDING
    payload: Any = None
    result: Optional[ExtractionRecord] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


QueueListener = Callable[[WorkItem], None]


class QueueStore:
    """
    Ordered, in-memory collection of WorkItems.

    Example:
        store = QueueStore()
        store.append([("shot1.png", png_bytes), ("shot2.jpg", jpg_bytes)])
        pending = store.select_by_status(ItemStatus.PENDING)
    """

    def __init__(self):
        self._order: list[str] = []
        self._items: dict[str, WorkItem] = {}
        self._listeners: list[QueueListener] = []

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def append(self, items: Iterable[tuple[str, Any]]) -> list[WorkItem]:
        """
        Queue new screenshots.

        Args:
            items: (source_label, payload) pairs, in the order to process them

        Returns:
            The created WorkItems, all PENDING
        """
        created = []
        for source_label, payload in items:
            item_id = self._new_id()
            item = WorkItem(id=item_id, source_label=source_label, payload=payload)
            self._items[item_id] = item
            self._order.append(item_id)
            created.append(item)

        if created:
            logger.info(f"Queued {len(created)} item(s), {len(self._order)} total")
        for item in created:
            self._notify(item)
        return created

    def transition(
        self,
        item_id: str,
        new_status: ItemStatus,
        result: Optional[ExtractionRecord] = None,
        error: Optional[str] = None,
    ) -> WorkItem:
        """
        Move an item to a new status.

        Args:
            item_id: Id of the item to update
            new_status: Target status
            result: Extraction record, required for DONE and refused otherwise
            error: Failure message, only kept for FAILED

        Returns:
            The updated WorkItem

        Raises:
            KeyError: If the id is unknown
            InvalidTransitionError: If the change is not allowed; the store
                is left untouched
        """
        current = self._items[item_id]

        if new_status not in ALLOWED_TRANSITIONS[current.status]:
            raise InvalidTransitionError(
                f"Item {item_id} ({current.source_label}): "
                f"{current.status.value} -> {new_status.value} is not allowed"
            )
        if new_status == ItemStatus.DONE and result is None:
            raise InvalidTransitionError(f"Item {item_id}: DONE requires a result")
        if new_status != ItemStatus.DONE and result is not None:
            raise InvalidTransitionError(
                f"Item {item_id}: result is only allowed with DONE"
            )

        updated = replace(
            current,
            status=new_status,
            result=result,
            error=error if new_status == ItemStatus.FAILED else None,
            # Raw bytes are not needed once the item is finished
            payload=None if new_status.is_terminal else current.payload,
        )
        self._items[item_id] = updated
        logger.debug(f"{updated.source_label}: {current.status.value} -> {new_status.value}")
        self._notify(updated)
        return updated

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, item_id: str) -> WorkItem:
        """Get the current state of an item (raises KeyError if unknown)."""
        return self._items[item_id]

    def snapshot(self) -> list[WorkItem]:
        """All items in queue order, as of now."""
        return [self._items[item_id] for item_id in self._order]

    def select_by_status(self, status: ItemStatus) -> list[WorkItem]:
        """Items with the given status, in queue order, as of now."""
        return [item for item in self.snapshot() if item.status == status]

    def counts(self) -> dict[ItemStatus, int]:
        """Number of items per status."""
        counts = {status: 0 for status in ItemStatus}
        for item in self._items.values():
            counts[item.status] += 1
        return counts

    def __len__(self) -> int:
        return len(self._order)

    # -------------------------------------------------------------------------
    # Observers
    # -------------------------------------------------------------------------

    def add_listener(self, callback: QueueListener) -> None:
        """Register a callback invoked with each appended or updated item."""
        self._listeners.append(callback)

    def remove_listener(self, callback: QueueListener) -> None:
        self._listeners.remove(callback)

    def _notify(self, item: WorkItem) -> None:
        for callback in list(self._listeners):
            callback(item)

    def _new_id(self) -> str:
        while True:
            item_id = uuid.uuid4().hex
            if item_id not in self._items:
                return item_id
