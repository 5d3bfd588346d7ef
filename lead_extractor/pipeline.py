"""
Batch runner for screenshot extraction.

Drains the pending items of a QueueStore through the profile extractor:
Screenshot → data URI → Vision LLM → ExtractionRecord → QueueStore

Features:
- Strictly sequential processing in queue order (one request in flight)
- Per-item failure isolation: a bad screenshot never stops the batch
- Pending snapshot taken at start: items queued mid-run wait for the next run
- Cooperative cancellation between items
- Progress callbacks for UI integration
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, Union

from .clients.vision import ExtractionError, TransportError
from .models.profile import ExtractionRecord
from .utils.encoding import EncodingError, encode_image
from .work_queue import ItemStatus, QueueStore, WorkItem

logger = logging.getLogger(__name__)


class RecordExtractor(Protocol):
    """Anything that turns an encoded image into an ExtractionRecord."""

    async def extract(self, image_url: str) -> ExtractionRecord:
        ...


ProgressCallback = Callable[[int, int, WorkItem], None]
Encoder = Callable[[Any, Optional[str]], str]


class RunnerBusyError(RuntimeError):
    """Raised when a run is started while another run is active."""

    pass


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass
class RunResult:
    """Aggregate outcome of one batch run."""
    total: int = 0
    done: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False
    duration_seconds: float = 0.0
    items: list[WorkItem] = field(default_factory=list)

    def add(self, item: WorkItem) -> None:
        """Record an item that reached a terminal state."""
        self.items.append(item)
        if item.status == ItemStatus.DONE:
            self.done += 1
        elif item.status == ItemStatus.FAILED:
            self.failed += 1

    @property
    def processed(self) -> int:
        return self.done + self.failed

    @property
    def success_rate(self) -> float:
        """Calculate success rate as percentage of processed items."""
        return (self.done / self.processed * 100) if self.processed > 0 else 0.0

    @property
    def failures(self) -> list[WorkItem]:
        return [item for item in self.items if item.status == ItemStatus.FAILED]


# =============================================================================
# RUNNER
# =============================================================================

class BatchRunner:
    """
    Sequential state machine over the pending items of a QueueStore.

    Each item goes PENDING → IN_FLIGHT → DONE | FAILED. The next item is
    only started once the previous one is terminal.

    Example:
        store = QueueStore()
        store.append([("a.png", png_bytes)])
        runner = BatchRunner(store, ProfileExtractor())
        result = await runner.run()
        rows = project_rows(store)
    """

    def __init__(
        self,
        store: QueueStore,
        extractor: RecordExtractor,
        progress_callback: Optional[ProgressCallback] = None,
        encoder: Encoder = encode_image,
    ):
        """
        Initialize the runner.

        Args:
            store: Queue to drain
            extractor: Extraction client (e.g. ProfileExtractor)
            progress_callback: Optional callback(current, total, item), called
                after each item reaches a terminal state
            encoder: Payload encoder, defaults to utils.encoding.encode_image
        """
        self.store = store
        self.extractor = extractor
        self.progress_callback = progress_callback
        self.encoder = encoder
        self._running = False
        self._cancel_requested = False

    @property
    def is_running(self) -> bool:
        return self._running

    def cancel(self) -> None:
        """
        Ask the active run to stop.

        Takes effect between items: the item whose request has already been
        sent still completes, remaining items stay PENDING.
        """
        if self._running:
            logger.info("Cancellation requested")
            self._cancel_requested = True

    async def run(self) -> RunResult:
        """
        Process every item that is PENDING when the run starts.

        Returns:
            RunResult with counts and the final state of processed items

        Raises:
            RunnerBusyError: If this runner is already running
        """
        if self._running:
            raise RunnerBusyError("A batch run is already in progress")

        self._running = True
        self._cancel_requested = False
        start_time = time.time()

        try:
            pending = self.store.select_by_status(ItemStatus.PENDING)
            result = RunResult(total=len(pending))

            if not pending:
                logger.info("No pending items, nothing to do")
                return result

            prompt_version = getattr(self.extractor, "prompt_version", None)
            logger.info(
                f"Starting batch run: {len(pending)} item(s)"
                + (f", prompt v{prompt_version}" if prompt_version else "")
            )

            for index, item in enumerate(pending):
                if self._cancel_requested:
                    result.cancelled = True
                    result.skipped = len(pending) - index
                    break

                final = await self._process_item(item)
                if final.status == ItemStatus.PENDING:
                    # Released by a cancel that arrived before the request was sent
                    result.cancelled = True
                    result.skipped = len(pending) - index
                    break

                result.add(final)
                if self.progress_callback:
                    self.progress_callback(index + 1, len(pending), final)

            result.duration_seconds = time.time() - start_time
            logger.info(
                f"Batch run complete: {result.done} done, {result.failed} failed, "
                f"{result.skipped} skipped in {result.duration_seconds:.2f}s"
            )
            return result

        finally:
            self._running = False
            self._cancel_requested = False

    async def _process_item(self, item: WorkItem) -> WorkItem:
        """
        Drive one item to a terminal state (or back to PENDING on cancel).

        Item-level failures are recorded on the item. Anything that escapes
        (task cancellation, interpreter interrupts, a raising store listener)
        first settles the item so it is never left IN_FLIGHT, then propagates.
        """
        request_sent = False
        try:
            self.store.transition(item.id, ItemStatus.IN_FLIGHT)

            try:
                image_url = self.encoder(item.payload, item.source_label)
            except EncodingError as e:
                logger.warning(f"Cannot encode {item.source_label}: {e}")
                return self.store.transition(item.id, ItemStatus.FAILED, error=str(e))
            except Exception as e:
                logger.exception(f"Unexpected error while encoding {item.source_label}")
                return self.store.transition(item.id, ItemStatus.FAILED, error=str(e))

            if self._cancel_requested:
                return self.store.transition(item.id, ItemStatus.PENDING)

            request_sent = True
            try:
                record = await self.extractor.extract(image_url)
            except (TransportError, ExtractionError) as e:
                logger.warning(f"Extraction failed for {item.source_label}: {e}")
                return self.store.transition(item.id, ItemStatus.FAILED, error=str(e))
            except Exception as e:
                logger.exception(f"Unexpected error while extracting {item.source_label}")
                return self.store.transition(item.id, ItemStatus.FAILED, error=str(e))

            return self.store.transition(item.id, ItemStatus.DONE, result=record)

        except BaseException as e:
            reason = "Cancelled" if isinstance(e, asyncio.CancelledError) else "Interrupted"
            self._settle_interrupted(item, request_sent, reason)
            raise

    def _settle_interrupted(self, item: WorkItem, request_sent: bool, reason: str) -> None:
        """
        Move an item left IN_FLIGHT by an escaping exception out of IN_FLIGHT.

        An item whose request was sent becomes FAILED; otherwise it goes back
        to PENDING for the next run. Items already terminal are left alone.
        """
        if self.store.get(item.id).status != ItemStatus.IN_FLIGHT:
            return

        logger.warning(f"Run interrupted while processing {item.source_label}: {reason}")
        try:
            if request_sent:
                self.store.transition(item.id, ItemStatus.FAILED, error=reason)
            else:
                self.store.transition(item.id, ItemStatus.PENDING)
        except Exception:
            # The store is updated before listeners run; only notification failed
            logger.exception(f"Listener failed while settling {item.source_label}")


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

async def process_images(
    image_paths: list[Union[str, Path]],
    extractor: Optional[RecordExtractor] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> tuple[QueueStore, RunResult]:
    """
    Queue image files and run one batch over them.

    Args:
        image_paths: Screenshot files, processed in the given order
        extractor: Extraction client (defaults to ProfileExtractor)
        progress_callback: Optional callback(current, total, item)

    Returns:
        The populated QueueStore and the RunResult

    Raises:
        ValueError: If no extractor is given and OPENAI_API_KEY is not configured
    """
    if extractor is None:
        from .clients.vision import VisionClient
        from .extractors.profile_extractor import ProfileExtractor
        # Build the client now so a missing API key fails once, not per image
        extractor = ProfileExtractor(client=VisionClient())

    store = QueueStore()
    store.append((Path(path).name, Path(path)) for path in image_paths)

    runner = BatchRunner(store, extractor, progress_callback=progress_callback)
    result = await runner.run()
    return store, result


def process_images_sync(
    image_paths: list[Union[str, Path]],
    extractor: Optional[RecordExtractor] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> tuple[QueueStore, RunResult]:
    """Synchronous wrapper for process_images."""
    return asyncio.run(
        process_images(
            image_paths,
            extractor=extractor,
            progress_callback=progress_callback,
        )
    )


def print_progress(current: int, total: int, item: WorkItem) -> None:
    """Default progress callback that prints to console."""
    status = "✓" if item.status == ItemStatus.DONE else "✗"
    print(f"  [{current}/{total}] {status} {item.source_label}")


def print_run_summary(result: RunResult) -> None:
    """Print a summary of a batch run."""
    print(f"\n{'='*60}")
    print("BATCH EXTRACTION SUMMARY")
    print(f"{'='*60}")
    print(f"Total images:   {result.total}")
    print(f"Done:           {result.done}")
    print(f"Failed:         {result.failed}")
    if result.cancelled:
        print(f"Skipped:        {result.skipped} (run cancelled)")
    print(f"Success rate:   {result.success_rate:.1f}%")
    print(f"Total time:     {result.duration_seconds:.2f}s")

    if result.failed > 0:
        print("\nFailed images:")
        for item in result.failures:
            print(f"  - {item.source_label}: {item.error}")

    print(f"{'='*60}\n")
