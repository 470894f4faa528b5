"""Tests for staged-code garbage collection and its periodic runner."""

from __future__ import annotations

import time
from datetime import timedelta
from threading import Event

import pytest

from services.state.function_registry import codes as registry_codes
from services.state.function_registry.blob_store import CodeBlobStore
from services.state.function_registry.collector import (
    CodeGarbageCollector,
    PeriodicCodeCollector,
)
from services.state.function_registry.data import SqlCodeBlobRepository

_TTL = timedelta(hours=24)


def _stage(blob_store) -> str:
    return blob_store.stage(content=b"x = 1\n", filename="x.py", mimetype="text/plain").blob_id


def test_sweep_deletes_only_expired_staged_code(blob_store, clock, code_root) -> None:
    """Expired staged blobs go; fresh and claimed blobs stay."""
    expired = _stage(blob_store)
    claimed = _stage(blob_store)
    assert blob_store.claim(claimed) is True
    clock.advance(hours=25)
    fresh = _stage(blob_store)

    report = CodeGarbageCollector(blob_store=blob_store, staging_ttl=_TTL, clock=clock).sweep()

    assert report.cutoff == clock.now - _TTL
    assert report.examined == 1
    assert report.deleted_ids == (expired,)
    assert blob_store.get(expired) is None
    assert blob_store.get(fresh) is not None
    assert blob_store.get(claimed) is not None
    assert sorted(path.stem for path in code_root.rglob("*.bin")) == sorted([fresh, claimed])


def test_sweep_keeps_blob_claimed_after_scan(
    blob_store, runtime, payloads, clock, code_root
) -> None:
    """A claim landing between scan and delete wins over the sweep."""

    class _ClaimingStore(CodeBlobStore):
        def list_expired_staged(self, *, cutoff):
            candidates = super().list_expired_staged(cutoff=cutoff)
            for blob in candidates:
                assert self.claim(blob.blob_id) is True
            return candidates

    blob_id = _stage(blob_store)
    clock.advance(days=2)
    racing_store = _ClaimingStore(
        repository=SqlCodeBlobRepository(runtime.schema_sessions),
        payloads=payloads,
        clock=clock,
    )

    report = CodeGarbageCollector(blob_store=racing_store, staging_ttl=_TTL, clock=clock).sweep()

    assert report.examined == 1
    assert report.deleted_ids == ()
    assert blob_store.get(blob_id).staged is False
    assert (code_root / blob_id[-2:] / f"{blob_id}.bin").is_file()


def test_claim_after_sweep_fails(service, blob_store, clock, stage, meta) -> None:
    """Once the sweep deleted a blob, creating a function with it fails."""
    blob_id = stage()
    clock.advance(days=2)

    swept = service.sweep_staged_code(meta=meta)
    created = service.create_function(
        meta=meta,
        owner="alice",
        function_id="f1",
        version="1.0",
        outputs=["out"],
        types=[{"type": "A", "blob_id": blob_id}],
    )

    assert swept.ok is True
    assert swept.payload is not None
    assert swept.payload.value.deleted_ids == (blob_id,)
    assert created.errors[0].code == registry_codes.CODE_NOT_STAGED


def test_sweep_skips_claimed_code_of_functions(service, blob_store, clock, stage, meta) -> None:
    """Code attached to a function is never collected."""
    blob_id = stage()
    assert service.create_function(
        meta=meta,
        owner="alice",
        function_id="f1",
        version="1.0",
        outputs=["out"],
        types=[{"type": "A", "blob_id": blob_id}],
    ).ok
    clock.advance(days=30)

    swept = service.sweep_staged_code(meta=meta)

    assert swept.payload is not None
    assert swept.payload.value.examined == 0
    assert blob_store.get(blob_id) is not None


class _CountingCollector:
    def __init__(self, *, fail: bool = False) -> None:
        self.calls = 0
        self.swept = Event()
        self._fail = fail

    def sweep(self):
        self.calls += 1
        self.swept.set()
        if self._fail:
            raise RuntimeError("sweep failed")
        return None


def test_periodic_collector_sweeps_until_stopped() -> None:
    """The background runner sweeps each interval and stops on request."""
    collector = _CountingCollector()
    runner = PeriodicCodeCollector(collector=collector, interval_seconds=0.01)

    runner.start()
    assert collector.swept.wait(timeout=5) is True
    assert runner.running is True
    runner.stop(timeout=5)

    assert runner.running is False
    calls = collector.calls
    assert calls >= 1
    collector.swept.clear()
    assert collector.swept.wait(timeout=0.05) is False


def test_periodic_collector_survives_failing_sweeps() -> None:
    """A failing sweep is logged and the loop keeps running."""
    collector = _CountingCollector(fail=True)
    runner = PeriodicCodeCollector(collector=collector, interval_seconds=0.01)

    assert runner.run_once() is None
    runner.start()
    try:
        for _ in range(500):
            if collector.calls >= 3:
                break
            time.sleep(0.01)
    finally:
        runner.stop(timeout=5)

    assert collector.calls >= 3


def test_periodic_collector_rejects_non_positive_interval() -> None:
    """Intervals must be positive."""
    with pytest.raises(ValueError):
        PeriodicCodeCollector(collector=_CountingCollector(), interval_seconds=0)
