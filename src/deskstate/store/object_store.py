"""SQLite-backed object store for persisted UI state."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from threading import RLock
from typing import Any, Callable, TypeVar

from ..core.context import RequestContext, run_with_deadline
from ..core.errors import (
    DuplicateObjectError,
    NotFoundError,
    PersistenceError,
    StaleObjectError,
)
from ..core.journal import UpdateRecord, UpdateType
from .objects import StateObject, kind_for, new_oid

__all__ = ["ObjectStore"]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T", bound=StateObject)
R = TypeVar("R")

MEMORY_PATH = ":memory:"


class ObjectStore:
    """Typed key-value persistence for :mod:`deskstate.store.objects` kinds.

    Objects live in a single ``objects`` table keyed by ``(otype, oid)`` with
    their JSON payload and a version counter. Every public operation is a
    coroutine bound by the deadline of the :class:`RequestContext` it is
    given; the SQLite work runs in a worker thread and an ``RLock``
    serializes it, so concurrent writers targeting the same object never
    interleave a read-modify-write.

    ``update`` is compare-and-swap on the object's version: writing an object
    read before somebody else's update raises :class:`StaleObjectError`.
    Handlers that mutate shared records such as the client singleton use
    :meth:`update_with`, which performs the read and the write under the
    same lock.

    Mutations append an :class:`UpdateRecord` to the context's journal, if
    it has one, in the worker thread right after the write commits. A
    caller whose deadline expires mid-write still finds the record in its
    journal once the write lands.
    """

    def __init__(self, db_path: Path | str = MEMORY_PATH) -> None:
        self._path = str(db_path)
        if self._path != MEMORY_PATH:
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        if self._path != MEMORY_PATH:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
        self._lock = RLock()
        self._create_schema()

    def _create_schema(self) -> None:
        with self._lock:
            with self._conn:
                self._conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS objects (
                        otype TEXT NOT NULL,
                        oid TEXT NOT NULL,
                        version INTEGER NOT NULL,
                        data TEXT NOT NULL,
                        PRIMARY KEY (otype, oid)
                    )
                    """
                )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, ctx: RequestContext, kind: type[T], oid: str) -> T | None:
        """Return the object, or ``None`` when it does not exist."""
        operation = f"get {kind.OTYPE}"
        row = await self._call(ctx, operation, self._fetch_row, kind.OTYPE, oid)
        if row is None:
            return None
        return self._decode(kind, row)

    async def must_get(self, ctx: RequestContext, kind: type[T], oid: str) -> T:
        """Return the object or raise :class:`NotFoundError`."""
        obj = await self.get(ctx, kind, oid)
        if obj is None:
            raise NotFoundError(
                message=f"{kind.OTYPE} {oid!r} not found",
                otype=kind.OTYPE,
                oid=oid,
            )
        return obj

    async def get_singleton(self, ctx: RequestContext, kind: type[T]) -> T:
        """Return the unique instance of a singleton kind such as the client.

        Singleton kinds declare a ``SINGLETON_OID``; the instance is stored
        under that id.
        """
        oid = getattr(kind, "SINGLETON_OID", None)
        if oid is None:
            raise TypeError(f"{kind.__name__} is not a singleton kind")
        operation = f"get singleton {kind.OTYPE}"
        row = await self._call(ctx, operation, self._fetch_row, kind.OTYPE, oid)
        if row is None:
            raise NotFoundError(message=f"no {kind.OTYPE} exists", otype=kind.OTYPE, oid=oid)
        return self._decode(kind, row)

    async def get_all(self, ctx: RequestContext, kind: type[T]) -> list[T]:
        """Return every stored object of ``kind`` in insertion order."""
        operation = f"get all {kind.OTYPE}"
        rows = await self._call(ctx, operation, self._fetch_all_rows, kind.OTYPE)
        return [self._decode(kind, row) for row in rows]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, ctx: RequestContext, obj: T) -> T:
        """Persist a new object, assigning an oid when it has none."""
        if not obj.oid:
            obj.oid = new_oid()
        operation = f"create {obj.OTYPE}"
        await self._call(ctx, operation, self._create_object, ctx, obj)
        return obj

    async def update(self, ctx: RequestContext, obj: T) -> T:
        """Replace a stored object with ``obj`` (compare-and-swap on version).

        Raises:
            NotFoundError: the object no longer exists.
            StaleObjectError: the object changed since ``obj`` was read.
        """
        operation = f"update {obj.OTYPE}"
        await self._call(ctx, operation, self._update_object, ctx, obj)
        return obj

    async def update_with(
        self,
        ctx: RequestContext,
        kind: type[T],
        oid: str,
        mutate: Callable[[T], bool | None],
    ) -> T:
        """Atomically read, mutate and write one object.

        ``mutate`` runs under the store lock against the current stored
        value. Returning ``False`` leaves the object untouched, in which
        case nothing is written or journaled.
        """
        operation = f"update {kind.OTYPE}"
        return await self._call(ctx, operation, self._modify_object, ctx, kind, oid, mutate)

    async def delete(self, ctx: RequestContext, kind: type[T], oid: str) -> None:
        """Remove an object; deleting a missing object raises :class:`NotFoundError`."""
        operation = f"delete {kind.OTYPE}"
        await self._call(ctx, operation, self._delete_object, ctx, kind.OTYPE, oid)

    def close(self) -> None:
        with self._lock:
            try:
                self._conn.close()
            except sqlite3.Error:  # pragma: no cover - close on a broken handle
                LOGGER.debug("Failed to close object store", exc_info=True)

    # ------------------------------------------------------------------
    # Thread-side helpers (run under the lock)
    # ------------------------------------------------------------------

    async def _call(
        self,
        ctx: RequestContext,
        operation: str,
        func: Callable[..., R],
        *args: Any,
    ) -> R:
        return await run_with_deadline(
            ctx,
            asyncio.to_thread(self._guarded, ctx, operation, func, *args),
            operation,
        )

    def _guarded(
        self,
        ctx: RequestContext,
        operation: str,
        func: Callable[..., R],
        *args: Any,
    ) -> R:
        with self._lock:
            # The awaiting coroutine may already have given up on us.
            ctx.check(operation)
            try:
                return func(*args)
            except sqlite3.Error as exc:
                LOGGER.warning("%s failed: %s", operation, exc)
                raise PersistenceError(
                    message=f"{operation}: {exc}",
                    details={"sqlite_error": type(exc).__name__},
                ) from exc

    def _fetch_row(self, otype: str, oid: str) -> sqlite3.Row | None:
        cursor = self._conn.execute(
            "SELECT version, data FROM objects WHERE otype = ? AND oid = ?",
            (otype, oid),
        )
        return cursor.fetchone()

    def _fetch_all_rows(self, otype: str) -> list[sqlite3.Row]:
        cursor = self._conn.execute(
            "SELECT version, data FROM objects WHERE otype = ? ORDER BY rowid",
            (otype,),
        )
        return cursor.fetchall()

    def _insert_row(self, otype: str, oid: str, payload: dict[str, Any]) -> None:
        try:
            with self._conn:
                self._conn.execute(
                    "INSERT INTO objects (otype, oid, version, data) VALUES (?, ?, ?, ?)",
                    (otype, oid, payload["version"], json.dumps(payload)),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateObjectError(
                message=f"{otype} {oid!r} already exists", otype=otype, oid=oid
            ) from exc

    def _replace_row(
        self, otype: str, oid: str, expected_version: int, payload: dict[str, Any]
    ) -> None:
        with self._conn:
            cursor = self._conn.execute(
                "UPDATE objects SET version = ?, data = ? WHERE otype = ? AND oid = ? AND version = ?",
                (payload["version"], json.dumps(payload), otype, oid, expected_version),
            )
        if cursor.rowcount:
            return
        current = self._fetch_row(otype, oid)
        if current is None:
            raise NotFoundError(message=f"{otype} {oid!r} not found", otype=otype, oid=oid)
        raise StaleObjectError(
            message=(
                f"{otype} {oid!r} is at version {current['version']}, "
                f"update was based on version {expected_version}"
            ),
            otype=otype,
            oid=oid,
            expected_version=expected_version,
            current_version=current["version"],
        )

    def _delete_row(self, otype: str, oid: str) -> None:
        with self._conn:
            cursor = self._conn.execute(
                "DELETE FROM objects WHERE otype = ? AND oid = ?", (otype, oid)
            )
        if not cursor.rowcount:
            raise NotFoundError(message=f"{otype} {oid!r} not found", otype=otype, oid=oid)

    # Mutations journal their record here, under the lock and right after
    # the commit, so a write that outlives its caller's deadline is still
    # reported.

    def _create_object(self, ctx: RequestContext, obj: T) -> None:
        payload = obj.to_dict()
        payload["version"] = 1
        self._insert_row(obj.OTYPE, obj.oid, payload)
        obj.version = 1
        LOGGER.debug("Created %s:%s", obj.OTYPE, obj.oid)
        ctx.record(UpdateRecord(UpdateType.CREATED, obj.OTYPE, obj.oid, obj.to_dict()))

    def _update_object(self, ctx: RequestContext, obj: T) -> None:
        new_version = obj.version + 1
        payload = obj.to_dict()
        payload["version"] = new_version
        self._replace_row(obj.OTYPE, obj.oid, obj.version, payload)
        obj.version = new_version
        LOGGER.debug("Updated %s:%s to version %d", obj.OTYPE, obj.oid, new_version)
        ctx.record(UpdateRecord(UpdateType.UPDATED, obj.OTYPE, obj.oid, obj.to_dict()))

    def _modify_object(
        self,
        ctx: RequestContext,
        kind: type[T],
        oid: str,
        mutate: Callable[[T], bool | None],
    ) -> T:
        row = self._fetch_row(kind.OTYPE, oid)
        if row is None:
            raise NotFoundError(
                message=f"{kind.OTYPE} {oid!r} not found", otype=kind.OTYPE, oid=oid
            )
        obj = self._decode(kind, row)
        if mutate(obj) is False:
            return obj
        self._update_object(ctx, obj)
        return obj

    def _delete_object(self, ctx: RequestContext, otype: str, oid: str) -> None:
        self._delete_row(otype, oid)
        LOGGER.debug("Deleted %s:%s", otype, oid)
        ctx.record(UpdateRecord(UpdateType.DELETED, otype, oid))

    @staticmethod
    def _decode(kind: type[T], row: sqlite3.Row) -> T:
        payload = json.loads(row["data"])
        try:
            stored_kind = kind_for(str(payload.get("otype", kind.OTYPE)))
        except KeyError as exc:
            raise PersistenceError(
                message=f"stored object has unknown type {payload.get('otype')!r}",
                details={"otype": payload.get("otype")},
            ) from exc
        if stored_kind is not kind:
            raise PersistenceError(
                message=f"stored object is a {stored_kind.OTYPE}, expected {kind.OTYPE}"
            )
        obj = kind.from_dict(payload)
        obj.version = int(row["version"])
        return obj
