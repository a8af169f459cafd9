"""Request-scoped journal of object mutations.

A journal records every object the store creates, updates, or deletes on
behalf of one request, in the order the mutations were issued. The request
handler owns it and hands the drained batch to the transport layer so remote
observers can replicate the changes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any

__all__ = ["UpdateType", "UpdateRecord", "UpdateBatch", "UpdateJournal"]

LOGGER = logging.getLogger(__name__)


class UpdateType(str, Enum):
    """Kind of mutation captured by an :class:`UpdateRecord`."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(slots=True, frozen=True)
class UpdateRecord:
    """Immutable description of one mutation.

    Attributes:
        update_type: Whether the object was created, updated or deleted.
        otype: Object kind (``"client"``, ``"window"``, ...).
        oid: Identifier of the mutated object.
        obj: Serialized value after the mutation, ``None`` for deletions.
    """

    update_type: UpdateType
    otype: str
    oid: str
    obj: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "updatetype": self.update_type.value,
            "otype": self.otype,
            "oid": self.oid,
        }
        if self.obj is not None:
            payload["obj"] = self.obj
        return payload


UpdateBatch = list[UpdateRecord]


class UpdateJournal:
    """Append-only ordered buffer of :class:`UpdateRecord` entries.

    A journal belongs to one request. The store appends to it from its
    worker threads right after each commit, so appends and reads are
    guarded by a lock.
    """

    __slots__ = ("_records", "_lock")

    def __init__(self) -> None:
        self._records: list[UpdateRecord] = []
        self._lock = Lock()

    def append(self, record: UpdateRecord) -> None:
        with self._lock:
            self._records.append(record)
            position = len(self._records)
        LOGGER.debug(
            "Journaled %s %s:%s (#%d)",
            record.update_type.value,
            record.otype,
            record.oid,
            position,
        )

    def drain(self) -> UpdateBatch:
        """Return the accumulated records in issuance order.

        The buffer is left intact; a journal is single-use per request.
        """
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __repr__(self) -> str:
        return f"UpdateJournal(records={len(self._records)})"
