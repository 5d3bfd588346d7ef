#!/usr/bin/env python3
"""
Tests for the BatchRunner state machine.

Uses stub extractors in place of the Vision LLM (no API calls).

Usage:
    python -m lead_extractor.tests.test_pipeline
"""

import asyncio
import base64
import sys
import tempfile
from pathlib import Path
from typing import Optional

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from lead_extractor.clients.vision import ExtractionError, TransportError
from lead_extractor.export import project_rows
from lead_extractor.models.profile import ExtractionRecord
from lead_extractor.pipeline import (
    BatchRunner,
    RunnerBusyError,
    RunResult,
    process_images_sync,
)
from lead_extractor.utils.encoding import encode_image
from lead_extractor.work_queue import ItemStatus, QueueStore, WorkItem


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


# =============================================================================
# STUBS
# =============================================================================

class StubExtractor:
    """Returns a record per call, or raises the configured error."""

    def __init__(self, error: Optional[Exception] = None, record: Optional[dict] = None):
        self.error = error
        self.record = record or {"username": "jane_doe", "emails": ["jane@x.com"], "confidence": "High"}
        self.calls: list[str] = []

    async def extract(self, image_url: str) -> ExtractionRecord:
        self.calls.append(image_url)
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return ExtractionRecord.model_validate(self.record)


class ScriptedExtractor:
    """Fails with TransportError for images whose bytes end with b"bad"."""

    def __init__(self):
        self.active = 0
        self.max_active = 0

    async def extract(self, image_url: str) -> ExtractionRecord:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0.001)
            data = base64.b64decode(image_url.split(",", 1)[1])
            if data.endswith(b"bad"):
                raise TransportError("service unavailable")
            return ExtractionRecord(username="ok_user", emails=[], confidence="Low")
        finally:
            self.active -= 1


def make_store(count: int, payload: bytes = PNG_BYTES) -> QueueStore:
    store = QueueStore()
    store.append((f"shot_{i}.png", payload) for i in range(count))
    return store


def run(runner: BatchRunner) -> RunResult:
    return asyncio.run(runner.run())


# =============================================================================
# TESTS
# =============================================================================

def test_successful_run():
    print("\nTesting successful run...")
    store = make_store(3)
    extractor = StubExtractor()

    result = run(BatchRunner(store, extractor))

    assert result.total == 3
    assert result.done == 3
    assert result.failed == 0
    assert result.success_rate == 100.0
    assert not result.cancelled
    assert len(extractor.calls) == 3
    assert all(call.startswith("data:image/png;base64,") for call in extractor.calls)

    for item in store.snapshot():
        assert item.status == ItemStatus.DONE
        assert item.result.username == "jane_doe"
        assert item.payload is None
    print("  ✓ 3/3 done")


def test_status_sequence_is_forward_only():
    """Every item is observed as PENDING, IN_FLIGHT, then DONE or FAILED."""
    print("\nTesting observed transitions...")
    store = QueueStore()
    history: dict[str, list[ItemStatus]] = {}
    store.add_listener(lambda item: history.setdefault(item.id, []).append(item.status))

    store.append([
        ("good_1.png", PNG_BYTES),
        ("bad.png", PNG_BYTES + b"bad"),
        ("broken.png", b""),
        ("good_2.png", PNG_BYTES),
    ])
    run(BatchRunner(store, ScriptedExtractor()))

    for item in store.snapshot():
        sequence = history[item.id]
        assert sequence[:2] == [ItemStatus.PENDING, ItemStatus.IN_FLIGHT], sequence
        assert len(sequence) == 3
        assert sequence[2] in (ItemStatus.DONE, ItemStatus.FAILED)
    print("  ✓ all sequences valid")


def test_completed_run_leaves_nothing_in_flight():
    store = QueueStore()
    store.append([
        ("a.png", PNG_BYTES),
        ("b.png", PNG_BYTES + b"bad"),
        ("c.png", b"not an image"),
    ])
    run(BatchRunner(store, ScriptedExtractor()))
    assert store.select_by_status(ItemStatus.IN_FLIGHT) == []
    assert store.select_by_status(ItemStatus.PENDING) == []


def test_always_failing_extractor():
    """Five pending items, every call fails: five FAILED, nothing to export."""
    print("\nTesting always-failing service...")
    store = make_store(5)
    extractor = StubExtractor(error=TransportError("connection refused"))

    result = run(BatchRunner(store, extractor))

    assert result.total == 5
    assert result.failed == 5
    assert result.done == 0
    assert result.success_rate == 0.0
    assert len(store.select_by_status(ItemStatus.FAILED)) == 5
    assert all(item.error == "connection refused" for item in store.snapshot())
    assert project_rows(store) == []
    print("  ✓ 5 failed, export empty")


def test_extraction_error_marks_item_failed():
    store = make_store(2)
    result = run(BatchRunner(store, StubExtractor(error=ExtractionError("not JSON"))))
    assert result.failed == 2
    assert [item.status for item in store.snapshot()] == [ItemStatus.FAILED] * 2


def test_encoding_failure_skips_remote_call_and_continues():
    store = QueueStore()
    store.append([
        ("missing.png", Path("/nonexistent/missing.png")),
        ("ok.png", PNG_BYTES),
    ])
    extractor = StubExtractor()

    result = run(BatchRunner(store, extractor))

    first, second = store.snapshot()
    assert first.status == ItemStatus.FAILED
    assert "Cannot read" in first.error
    assert second.status == ItemStatus.DONE
    assert len(extractor.calls) == 1
    assert result.done == 1 and result.failed == 1


def test_unexpected_error_does_not_abort_batch():
    store = make_store(3)
    extractor = StubExtractor(error=RuntimeError("bug in gateway"))
    result = run(BatchRunner(store, extractor))
    assert result.failed == 3
    assert len(extractor.calls) == 3


def test_processing_is_sequential_and_in_order():
    store = make_store(6)
    order: list[str] = []
    extractor = ScriptedExtractor()

    def on_progress(current: int, total: int, item: WorkItem) -> None:
        order.append(item.source_label)

    run(BatchRunner(store, extractor, progress_callback=on_progress))

    assert extractor.max_active == 1
    assert order == [f"shot_{i}.png" for i in range(6)]


def test_progress_callback_counts():
    store = make_store(3)
    calls: list[tuple[int, int, ItemStatus]] = []
    run(BatchRunner(
        store,
        StubExtractor(),
        progress_callback=lambda current, total, item: calls.append((current, total, item.status)),
    ))
    assert calls == [(1, 3, ItemStatus.DONE), (2, 3, ItemStatus.DONE), (3, 3, ItemStatus.DONE)]


def test_empty_queue_is_a_no_op():
    store = QueueStore()
    extractor = StubExtractor()
    result = run(BatchRunner(store, extractor))
    assert result.total == 0
    assert result.processed == 0
    assert extractor.calls == []


def test_only_pending_items_are_processed():
    store = make_store(2)
    run(BatchRunner(store, StubExtractor(error=TransportError("down"))))
    store.append([("new.png", PNG_BYTES)])

    extractor = StubExtractor()
    result = run(BatchRunner(store, extractor))

    assert result.total == 1
    assert len(extractor.calls) == 1
    statuses = [item.status for item in store.snapshot()]
    assert statuses == [ItemStatus.FAILED, ItemStatus.FAILED, ItemStatus.DONE]


def test_items_appended_mid_run_wait_for_next_run():
    """The pending snapshot is taken when the run starts."""
    print("\nTesting mid-run append...")
    store = make_store(2)

    class AppendingExtractor(StubExtractor):
        async def extract(self, image_url: str) -> ExtractionRecord:
            if not self.calls:
                store.append([("late.png", PNG_BYTES)])
            return await super().extract(image_url)

    extractor = AppendingExtractor()
    result = run(BatchRunner(store, extractor))

    assert result.total == 2
    assert len(extractor.calls) == 2
    late = store.snapshot()[-1]
    assert late.source_label == "late.png"
    assert late.status == ItemStatus.PENDING

    second = run(BatchRunner(store, StubExtractor()))
    assert second.total == 1
    assert store.get(late.id).status == ItemStatus.DONE
    print("  ✓ late item processed by the next run only")


def test_reentrant_run_is_refused():
    store = make_store(2)
    errors: list[Exception] = []

    class ReentrantExtractor(StubExtractor):
        async def extract(self, image_url: str) -> ExtractionRecord:
            try:
                await runner.run()
            except RunnerBusyError as e:
                errors.append(e)
            return await super().extract(image_url)

    runner = BatchRunner(store, ReentrantExtractor())
    result = run(runner)

    assert len(errors) == 2
    assert result.done == 2
    assert not runner.is_running


def test_cancel_between_items():
    """Cancel lets the current call finish; later items stay PENDING."""
    print("\nTesting cancellation...")
    store = make_store(5)

    class CancellingExtractor(StubExtractor):
        async def extract(self, image_url: str) -> ExtractionRecord:
            runner.cancel()
            return await super().extract(image_url)

    extractor = CancellingExtractor()
    runner = BatchRunner(store, extractor)
    result = run(runner)

    assert result.cancelled
    assert result.done == 1
    assert result.skipped == 4
    assert len(extractor.calls) == 1
    assert store.select_by_status(ItemStatus.IN_FLIGHT) == []
    assert len(store.select_by_status(ItemStatus.PENDING)) == 4

    # A new run picks up where the cancelled one stopped
    resumed = run(BatchRunner(store, StubExtractor()))
    assert resumed.done == 4
    print("  ✓ cancelled run resumable")


def test_cancel_before_request_releases_item():
    store = make_store(3)
    extractor = StubExtractor()

    def cancelling_encoder(payload, label):
        runner.cancel()
        return encode_image(payload, label)

    runner = BatchRunner(store, extractor, encoder=cancelling_encoder)
    result = run(runner)

    assert result.cancelled
    assert result.skipped == 3
    assert extractor.calls == []
    assert len(store.select_by_status(ItemStatus.PENDING)) == 3
    assert store.snapshot()[0].payload == PNG_BYTES


def test_cancel_when_idle_is_ignored():
    store = make_store(1)
    runner = BatchRunner(store, StubExtractor())
    runner.cancel()
    result = run(runner)
    assert not result.cancelled
    assert result.done == 1


def test_process_images_sync_with_files():
    with tempfile.TemporaryDirectory() as tmp:
        paths = []
        for name in ["b.png", "a.png"]:
            path = Path(tmp) / name
            path.write_bytes(PNG_BYTES)
            paths.append(path)

        store, result = process_images_sync(paths, extractor=StubExtractor())

    assert result.done == 2
    assert [item.source_label for item in store.snapshot()] == ["b.png", "a.png"]
    assert [row.Source_File for row in project_rows(store)] == ["b.png", "a.png"]


# =============================================================================
# INTERRUPTION
# =============================================================================

class Interrupt(BaseException):
    """Stands in for an interrupt raised outside the Exception hierarchy."""


def test_task_cancellation_fails_the_in_flight_item():
    """Cancelling the run task mid-request leaves nothing IN_FLIGHT."""
    print("\nTesting task cancellation...")
    store = make_store(3)

    async def scenario() -> BatchRunner:
        started = asyncio.Event()

        class BlockingExtractor:
            async def extract(self, image_url: str) -> ExtractionRecord:
                started.set()
                await asyncio.sleep(3600)

        runner = BatchRunner(store, BlockingExtractor())
        task = asyncio.create_task(runner.run())
        await started.wait()
        task.cancel()
        try:
            await task
            assert False, "Should have raised CancelledError"
        except asyncio.CancelledError:
            pass
        return runner

    runner = asyncio.run(scenario())

    first, *rest = store.snapshot()
    assert first.status == ItemStatus.FAILED
    assert first.error == "Cancelled"
    assert [item.status for item in rest] == [ItemStatus.PENDING] * 2
    assert store.select_by_status(ItemStatus.IN_FLIGHT) == []
    assert not runner.is_running
    print("  ✓ in-flight item failed, rest pending")


def test_base_exception_from_extractor_settles_item():
    store = make_store(2)

    class InterruptingExtractor(StubExtractor):
        async def extract(self, image_url: str) -> ExtractionRecord:
            self.calls.append(image_url)
            raise Interrupt()

    runner = BatchRunner(store, InterruptingExtractor())
    try:
        run(runner)
        assert False, "Should have raised Interrupt"
    except Interrupt:
        pass

    first, second = store.snapshot()
    assert first.status == ItemStatus.FAILED
    assert first.error == "Interrupted"
    assert second.status == ItemStatus.PENDING
    assert store.select_by_status(ItemStatus.IN_FLIGHT) == []
    assert not runner.is_running

    # The untouched item is picked up by the next run
    resumed = run(BatchRunner(store, StubExtractor()))
    assert resumed.total == 1 and resumed.done == 1


def test_raising_listener_releases_item_before_request():
    """A listener failing on the IN_FLIGHT event sends the item back to PENDING."""
    print("\nTesting raising listener...")
    store = make_store(2)
    extractor = StubExtractor()
    raised: list[str] = []

    def listener(item: WorkItem) -> None:
        if item.status == ItemStatus.IN_FLIGHT and not raised:
            raised.append(item.id)
            raise RuntimeError("render failed")

    store.add_listener(listener)
    try:
        run(BatchRunner(store, extractor))
        assert False, "Should have raised RuntimeError"
    except RuntimeError:
        pass

    assert store.select_by_status(ItemStatus.IN_FLIGHT) == []
    assert store.get(raised[0]).status == ItemStatus.PENDING
    assert extractor.calls == []

    store.remove_listener(listener)
    result = run(BatchRunner(store, extractor))
    assert result.done == 2
    print("  ✓ item released and processed on the next run")


def test_raising_listener_after_done_keeps_result():
    store = make_store(1)

    def listener(item: WorkItem) -> None:
        if item.status == ItemStatus.DONE:
            raise RuntimeError("render failed")

    store.add_listener(listener)
    try:
        run(BatchRunner(store, StubExtractor()))
        assert False, "Should have raised RuntimeError"
    except RuntimeError:
        pass

    (item,) = store.snapshot()
    assert item.status == ItemStatus.DONE
    assert item.result.username == "jane_doe"


def test_unexpected_encoder_error_marks_item_failed():
    store = make_store(2)
    extractor = StubExtractor()
    calls: list[str] = []

    def flaky_encoder(payload, label):
        calls.append(label)
        if len(calls) == 1:
            raise TypeError("unsupported payload")
        return encode_image(payload, label)

    result = run(BatchRunner(store, extractor, encoder=flaky_encoder))

    first, second = store.snapshot()
    assert first.status == ItemStatus.FAILED
    assert "unsupported payload" in first.error
    assert second.status == ItemStatus.DONE
    assert result.failed == 1 and result.done == 1


def test_process_images_without_api_key_fails_upfront():
    from lead_extractor.utils.config import settings

    original = settings.openai_api_key
    settings.openai_api_key = None
    try:
        process_images_sync([Path("/nonexistent/a.png"), Path("/nonexistent/b.png")])
        assert False, "Should have raised ValueError"
    except ValueError as e:
        assert "OPENAI_API_KEY" in str(e)
    finally:
        settings.openai_api_key = original


def main():
    tests = [
        value for name, value in sorted(globals().items())
        if name.startswith("test_") and callable(value)
    ]
    for test in tests:
        test()
    print(f"\nAll {len(tests)} pipeline tests passed!")


if __name__ == "__main__":
    main()
