"""Live plan catalog kept in sync with the records store."""
from __future__ import annotations

import asyncio
import contextlib
import hashlib
import json
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal

from vitrine.core.logging import get_logger
from vitrine.core.observability import catalog_reloads_total
from vitrine.core.plans import CatalogSnapshot, Plan

logger = get_logger(__name__)

FetchRows = Callable[[str], Awaitable[list[dict[str, Any]]]]

_CLOSED = object()


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    table: str
    kind: Literal["insert", "update", "delete"] = "update"


class Listener:
    """Async iterator over the change events of one table."""

    def __init__(self, channel: "ChangeChannel", table: str) -> None:
        self.table = table
        self._channel = channel
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self.closed = False

    def deliver(self, event: ChangeEvent) -> None:
        if not self.closed:
            self._queue.put_nowait(event)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._channel.detach(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Listener":
        return self

    async def __anext__(self) -> ChangeEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class ChangeChannel:
    """In-process push channel announcing row changes per table."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def listen(self, table: str) -> Listener:
        listener = Listener(self, table)
        self._listeners[table].append(listener)
        return listener

    def detach(self, listener: Listener) -> None:
        with contextlib.suppress(ValueError):
            self._listeners[listener.table].remove(listener)

    def publish(self, event: ChangeEvent) -> None:
        for listener in list(self._listeners.get(event.table, ())):
            listener.deliver(event)

    def listener_count(self, table: str) -> int:
        return len(self._listeners.get(table, ()))

    async def aclose(self) -> None:
        for listeners in list(self._listeners.values()):
            for listener in list(listeners):
                listener.close()


class PollingChangeChannel(ChangeChannel):
    """Change feed for stores that cannot push: polls and fingerprints rows."""

    def __init__(self, fetch_rows: FetchRows, interval: float) -> None:
        super().__init__()
        self._fetch_rows = fetch_rows
        self._interval = interval
        self._pollers: dict[str, asyncio.Task[None]] = {}

    def listen(self, table: str) -> Listener:
        listener = super().listen(table)
        if table not in self._pollers:
            self._pollers[table] = asyncio.create_task(self._poll(table))
        return listener

    @staticmethod
    def _fingerprint(rows: list[dict[str, Any]]) -> str:
        payload = json.dumps(rows, sort_keys=True, default=str).encode()
        return hashlib.sha256(payload).hexdigest()

    async def _poll(self, table: str) -> None:
        last: str | None = None
        while True:
            try:
                fingerprint = self._fingerprint(await self._fetch_rows(table))
            except Exception as exc:
                logger.warning("catalog_poll_failed", table=table, error=str(exc))
            else:
                if last is not None and fingerprint != last:
                    self.publish(ChangeEvent(table=table, kind="update"))
                last = fingerprint
            await asyncio.sleep(self._interval)

    async def aclose(self) -> None:
        for task in self._pollers.values():
            task.cancel()
        for task in self._pollers.values():
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._pollers.clear()
        await super().aclose()


class CatalogWatcher:
    """Single writer of the local catalog copy.

    A background task subscribes to the change channel, loads a first snapshot
    and then reloads the whole table on every notification. Readers only ever
    see complete :class:`CatalogSnapshot` values; a later reload replaces the
    previous one outright.
    """

    def __init__(self, fetch_rows: FetchRows, channel: ChangeChannel, table: str = "subscription_plans") -> None:
        self.table = table
        self._fetch_rows = fetch_rows
        self._channel = channel
        self._snapshot = CatalogSnapshot()
        self._changed = asyncio.Condition()
        self._task: asyncio.Task[None] | None = None

    @property
    def snapshot(self) -> CatalogSnapshot:
        return self._snapshot

    @property
    def plans(self) -> tuple[Plan, ...]:
        return self._snapshot.plans

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"catalog-watcher:{self.table}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def __aenter__(self) -> "CatalogWatcher":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def wait_for_version(self, version: int, timeout: float | None = None) -> CatalogSnapshot:
        async def _wait() -> CatalogSnapshot:
            async with self._changed:
                await self._changed.wait_for(lambda: self._snapshot.version >= version)
                return self._snapshot

        return await asyncio.wait_for(_wait(), timeout)

    async def _run(self) -> None:
        try:
            listener = self._channel.listen(self.table)
        except Exception as exc:
            logger.warning("catalog_subscription_failed", table=self.table, error=str(exc))
            return

        try:
            await self._reload("snapshot")
            async for event in listener:
                await self._reload(event.kind)
        finally:
            listener.close()
            logger.info("catalog_listener_detached", table=self.table)

    async def _reload(self, reason: str) -> None:
        try:
            rows = await self._fetch_rows(self.table)
        except Exception as exc:
            logger.warning("catalog_fetch_failed", table=self.table, reason=reason, error=str(exc))
            catalog_reloads_total.labels(result="failed").inc()
            return

        plans: list[Plan] = []
        for row in rows:
            try:
                plans.append(Plan.from_row(row))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("catalog_row_skipped", table=self.table, row_id=row.get("id"), error=str(exc))

        async with self._changed:
            self._snapshot = CatalogSnapshot(plans=tuple(plans), version=self._snapshot.version + 1)
            self._changed.notify_all()
        catalog_reloads_total.labels(result="replaced").inc()
        logger.info(
            "catalog_snapshot_replaced",
            table=self.table,
            reason=reason,
            plans=len(plans),
            version=self._snapshot.version,
        )


__all__ = ["ChangeChannel", "ChangeEvent", "CatalogWatcher", "Listener", "PollingChangeChannel"]
