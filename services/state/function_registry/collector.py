"""Garbage collection of staged code that was never claimed."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from threading import Event, Lock, Thread

from packages.registry_shared.logging import fields, get_logger, log_context
from services.state.function_registry.blob_store import CodeBlobStore, utc_now
from services.state.function_registry.domain import SweepReport

_LOGGER = get_logger(__name__)


class CodeGarbageCollector:
    """Delete staged blobs older than the staging TTL.

    Each deletion is conditional on the blob still being staged, so a blob
    claimed between scan and delete survives the sweep.
    """

    def __init__(
        self,
        *,
        blob_store: CodeBlobStore,
        staging_ttl: timedelta,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._blob_store = blob_store
        self._staging_ttl = staging_ttl
        self._clock = clock

    @property
    def staging_ttl(self) -> timedelta:
        """Return the retention window applied to staged blobs."""
        return self._staging_ttl

    def sweep(self) -> SweepReport:
        """Run one sweep and report what was examined and deleted."""
        cutoff = self._clock() - self._staging_ttl
        candidates = self._blob_store.list_expired_staged(cutoff=cutoff)
        deleted: list[str] = []
        for blob in candidates:
            try:
                if self._blob_store.delete_if_staged(blob.blob_id):
                    deleted.append(blob.blob_id)
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning(
                    "Failed to collect staged code: blob_id=%s exception_type=%s",
                    blob.blob_id,
                    type(exc).__name__,
                    exc_info=exc,
                )

        report = SweepReport(
            cutoff=cutoff,
            examined=len(candidates),
            deleted_ids=tuple(deleted),
        )
        with log_context(
            {
                fields.EVENT: fields.GC_SWEEP_EVENT,
                fields.GC_CUTOFF: report.cutoff.isoformat(),
                fields.GC_EXAMINED: report.examined,
                fields.GC_DELETED: len(report.deleted_ids),
            }
        ):
            _LOGGER.info("Staged code sweep complete")
        return report


class PeriodicCodeCollector:
    """Run a collector's sweep on a background thread every interval."""

    def __init__(
        self,
        *,
        collector: CodeGarbageCollector,
        interval_seconds: float,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._collector = collector
        self._interval_seconds = interval_seconds
        self._lock = Lock()
        self._worker: Thread | None = None
        self._stop_event = Event()

    @property
    def running(self) -> bool:
        """Return whether the background worker is alive."""
        with self._lock:
            return self._worker is not None and self._worker.is_alive()

    def start(self) -> None:
        """Start the background worker once."""
        with self._lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._stop_event.clear()
            self._worker = Thread(
                target=self._run_loop, name="code-gc", daemon=True
            )
            self._worker.start()

    def stop(self, *, timeout: float | None = None) -> None:
        """Signal the worker to stop and wait for it to exit."""
        self._stop_event.set()
        with self._lock:
            worker = self._worker
            self._worker = None
        if worker is not None:
            worker.join(timeout)

    def wait(self) -> None:
        """Block until the worker stops."""
        with self._lock:
            worker = self._worker
        if worker is not None:
            worker.join()

    def run_once(self) -> SweepReport | None:
        """Run one sweep, logging and swallowing failures so the loop survives."""
        try:
            return self._collector.sweep()
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error(
                "Staged code sweep failed: exception_type=%s",
                type(exc).__name__,
                exc_info=exc,
            )
            return None

    def _run_loop(self) -> None:
        """Sweep after each interval until stopped."""
        while not self._stop_event.wait(self._interval_seconds):
            self.run_once()
