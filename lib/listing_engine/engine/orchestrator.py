"""
Listing Orchestrator
====================
prepare_listing: the single entry point that turns a listing's raw photos
into enhanced photos plus a confidence score.

Stages run strictly in sequence, each on the whole listing:

    analyze -> lock presets -> build strategy -> execute
            -> consistency pass -> validate -> terminal status

Only the execute stage is concurrent. Photo-level failures never abort the
listing; an empty listing, a run where every photo failed, an executor
crash or a cancellation end in 'failed' with the first error.
"""

import json
import logging
import threading
from typing import Any, List, Optional

from . import consistency, preset_locker, strategy_builder
from .analyzer import PhotoAnalyzer
from .batch_executor import CANCELLED_MESSAGE, BatchExecutor
from .quality_validator import QualityValidator, decide_status
from ..config.settings import EngineConfig
from ..errors import EmptyListingError, ListingEngineError, RunCancelled
from ..models.enums import ListingStatus, Phase, ToolId
from ..models.results import (
    ConsistencyAdjustment,
    ListingResult,
    PhotoProcessingResult,
    PhotoProgress,
    ValidationReport,
)
from ..models.strategy import ListingStrategy
from ..notifications.progress import ProgressTracker
from ..utils.enum_utils import require_exhaustive

logger = logging.getLogger(__name__)


# Progress reached when each stage starts
STAGE_PROGRESS = {
    Phase.ANALYZING: 0,
    Phase.STRATEGIZING: 30,
    Phase.PROCESSING: 35,
    Phase.VERIFYING: 85,
}

TERMINAL_PHASES = require_exhaustive({
    ListingStatus.PREPARED: Phase.COMPLETED,
    ListingStatus.NEEDS_REVIEW: Phase.NEEDS_REVIEW,
    ListingStatus.FAILED: Phase.FAILED,
}, ListingStatus, "TERMINAL_PHASES")

RESULT_FILENAME = "listing_result.json"


class ListingPipeline:
    """
    Analyze, plan, execute and verify one listing at a time.

    Usage:
        pipeline = ListingPipeline(analyzer, executor, storage=storage)
        pipeline.progress.subscribe(notifier.send_progress)
        result = pipeline.prepare_listing("listing-42", photos)

    cancel() may be called from another thread; tool calls already in
    flight finish, nothing new starts, and the run ends 'failed'.
    """

    def __init__(
        self,
        analyzer: PhotoAnalyzer,
        executor: BatchExecutor,
        storage=None,
        config: Optional[EngineConfig] = None,
        progress: Optional[ProgressTracker] = None,
        validator: Optional[QualityValidator] = None,
    ):
        """
        Args:
            analyzer: Photo analyzer
            executor: Strategy executor (its router is used for estimates)
            storage: Storage provider for validation reads and result files
            config: Engine configuration (defaults when None)
            progress: Progress sink (a fresh tracker when None)
            validator: Quality validator (built from storage and config when None)
        """
        self.analyzer = analyzer
        self.executor = executor
        self.storage = storage
        self.config = config or EngineConfig()
        self.progress = progress or ProgressTracker()
        self.validator = validator or QualityValidator(storage=storage, settings=self.config.validation)
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """Abort the run in progress."""
        logger.info("Cancellation requested")
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def prepare_listing(self, listing_id: str, photos: List[Any]) -> ListingResult:
        """
        Run the whole pipeline for one listing.

        Re-running with the same photos rebuilds the same strategy, so a
        failed listing can simply be submitted again.

        Args:
            listing_id: Listing identifier
            photos: Input photos ({'id', 'ref'} mappings)

        Returns:
            ListingResult; never raises for photo or provider failures
        """
        self._cancel_event.clear()
        self.progress.reset()
        strategy: Optional[ListingStrategy] = None

        logger.info("Preparing listing %s (%d photos)", listing_id, len(photos))

        try:
            if not photos:
                raise EmptyListingError(listing_id)

            analyses = self._analyze(photos)
            self._check_cancelled()

            self.progress.emit(Phase.STRATEGIZING, STAGE_PROGRESS[Phase.STRATEGIZING], "Locking presets")
            locked = preset_locker.lock(analyses, self.config.presets)
            strategy = strategy_builder.build(
                analyses,
                locked,
                config=self.config,
                router=self.executor.router,
                listing_id=listing_id,
            )
            logger.debug("%s", strategy_builder.get_strategy_summary(strategy))
            self.progress.emit(
                Phase.STRATEGIZING,
                STAGE_PROGRESS[Phase.PROCESSING] - 1,
                f"Planned {strategy.total_decisions} enhancements for {len(strategy.photos)} photos",
            )
            self._check_cancelled()

            results = self._execute(strategy)
        except (ListingEngineError, ValueError) as e:
            return self._failed(listing_id, str(e), strategy=strategy)

        if self.cancelled:
            return self._failed(listing_id, CANCELLED_MESSAGE, strategy=strategy, per_photo=results)

        failures = [r for r in results if not r.success]
        if failures and len(failures) == len(results):
            return self._failed(
                listing_id,
                f"{failures[0].photo_id}: {failures[0].error or 'every photo failed'}",
                strategy=strategy,
                per_photo=results,
            )

        self.progress.emit(Phase.VERIFYING, STAGE_PROGRESS[Phase.VERIFYING], "Checking consistency")
        adjustments = consistency.check(results, strategy.locked_presets, self.config.consistency)

        self.progress.emit(Phase.VERIFYING, STAGE_PROGRESS[Phase.VERIFYING] + 5, "Validating quality")
        report = self.validator.validate(results)

        return self._finish(listing_id, strategy, results, adjustments, report)

    def persist(self, result: ListingResult, folder: str = "") -> Optional[str]:
        """
        Write the result JSON through the storage provider.

        Args:
            result: Finished listing result
            folder: Key prefix (the listing's output folder)

        Returns:
            Ref of the written file, or None without storage
        """
        if self.storage is None:
            return None
        key = f"{folder.rstrip('/')}/{RESULT_FILENAME}" if folder else RESULT_FILENAME
        data = json.dumps(result.model_dump(mode='json'), indent=2).encode('utf-8')
        ref = self.storage.write(data, key=key, content_type='application/json')
        logger.info("Saved result for %s: %s", result.listing_id, ref)
        return ref

    # =========================================================================
    # STAGES
    # =========================================================================

    def _analyze(self, photos: List[Any]):
        total = len(photos)
        self.progress.emit(Phase.ANALYZING, STAGE_PROGRESS[Phase.ANALYZING], f"Analyzing {total} photos")
        span = STAGE_PROGRESS[Phase.STRATEGIZING] - STAGE_PROGRESS[Phase.ANALYZING]

        def on_analyzed(done: int, count: int, photo_id: str) -> None:
            self.progress.emit(
                Phase.ANALYZING,
                STAGE_PROGRESS[Phase.ANALYZING] + span * done / count,
                f"Analyzed {done}/{count}",
                photo_progress=PhotoProgress(current=done, total=count),
                current_photo_id=photo_id,
            )

        return self.analyzer.analyze_listing(photos, on_analyzed=on_analyzed)

    def _execute(self, strategy: ListingStrategy) -> List[PhotoProcessingResult]:
        total = len(strategy.photos)
        start = STAGE_PROGRESS[Phase.PROCESSING]
        span = STAGE_PROGRESS[Phase.VERIFYING] - start
        done = 0
        lock = threading.Lock()

        self.progress.emit(Phase.PROCESSING, start, f"Enhancing {total} photos")

        def on_tool_start(photo_id: str, tool: ToolId) -> None:
            self.progress.emit(
                Phase.PROCESSING,
                start + span * done / total,
                f"{tool.value} on {photo_id}",
                current_tool=tool,
                current_photo_id=photo_id,
            )

        def on_photo_complete(result: PhotoProcessingResult) -> None:
            nonlocal done
            with lock:
                done += 1
                current = done
            self.progress.emit(
                Phase.PROCESSING,
                start + span * current / total,
                f"Processed {current}/{total}",
                photo_progress=PhotoProgress(current=current, total=total),
                current_photo_id=result.photo_id,
            )

        try:
            return self.executor.execute(
                strategy,
                on_photo_complete=on_photo_complete,
                cancel_event=self._cancel_event,
                on_tool_start=on_tool_start,
            )
        except ListingEngineError:
            raise
        except Exception as e:
            logger.exception("Executor crashed")
            raise ListingEngineError(f"Executor crashed: {e}") from e

    def _check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise RunCancelled(CANCELLED_MESSAGE)

    # =========================================================================
    # OUTCOME
    # =========================================================================

    def _finish(
        self,
        listing_id: str,
        strategy: ListingStrategy,
        results: List[PhotoProcessingResult],
        adjustments: List[ConsistencyAdjustment],
        report: ValidationReport,
    ) -> ListingResult:
        weight = self.config.validation.strategy_weight
        confidence = round(weight * strategy.confidence_score + (1 - weight) * report.overall_score, 1)
        status, minor = decide_status(confidence, settings=self.config.validation)

        flagged = _ordered_ids(
            results,
            set(report.needs_review_photo_ids) | {a.photo_id for a in adjustments},
        )

        if status == ListingStatus.PREPARED and self.config.consistency.forces_review and adjustments:
            logger.info("Consistency flags block 'prepared' for %s", listing_id)
            status, minor = ListingStatus.NEEDS_REVIEW, False

        result = ListingResult(
            listing_id=listing_id,
            status=status,
            hero_photo_id=strategy.hero_photo_id,
            twilight_photo_id=_twilight_if_applied(strategy, results),
            per_photo=results,
            confidence_score=confidence,
            minor=minor,
            total_cost=_total_cost(results),
            errors=_photo_errors(results),
            flagged_photo_ids=flagged,
            issues=report.issues,
            adjustments=adjustments,
            strategy=strategy,
        )

        self.progress.emit(
            TERMINAL_PHASES[status], 100,
            f"Listing {status.value} (confidence {confidence:.1f})",
        )
        logger.info(
            "Listing %s %s: confidence %.1f%s, %d flagged, $%.2f",
            listing_id, status.value, confidence, " (minor)" if minor else "",
            len(flagged), result.total_cost,
        )
        return result

    def _failed(
        self,
        listing_id: str,
        error: str,
        strategy: Optional[ListingStrategy] = None,
        per_photo: Optional[List[PhotoProcessingResult]] = None,
    ) -> ListingResult:
        per_photo = per_photo or []
        errors = [error] + [e for e in _photo_errors(per_photo) if e != error]

        self.progress.emit(Phase.FAILED, 100, error)
        logger.warning("Listing %s failed: %s", listing_id, error)

        return ListingResult(
            listing_id=listing_id,
            status=ListingStatus.FAILED,
            hero_photo_id=strategy.hero_photo_id if strategy else None,
            per_photo=per_photo,
            total_cost=_total_cost(per_photo),
            errors=errors,
            strategy=strategy,
        )


def prepare_listing(
    listing_id: str,
    photos: List[Any],
    analyzer: PhotoAnalyzer,
    executor: BatchExecutor,
    storage=None,
    config: Optional[EngineConfig] = None,
    progress: Optional[ProgressTracker] = None,
) -> ListingResult:
    """Run a one-off pipeline for a listing."""
    pipeline = ListingPipeline(analyzer, executor, storage=storage, config=config, progress=progress)
    return pipeline.prepare_listing(listing_id, photos)


def _ordered_ids(results: List[PhotoProcessingResult], ids: set) -> List[str]:
    return [r.photo_id for r in results if r.photo_id in ids]


def _total_cost(results: List[PhotoProcessingResult]) -> float:
    return round(sum(r.total_cost for r in results), 4)


def _photo_errors(results: List[PhotoProcessingResult]) -> List[str]:
    return [f"{r.photo_id}: {r.error}" for r in results if r.error]


def _twilight_if_applied(strategy: ListingStrategy, results: List[PhotoProcessingResult]) -> Optional[str]:
    for result in results:
        if result.photo_id == strategy.twilight_photo_id and ToolId.VIRTUAL_TWILIGHT in result.tools_applied:
            return result.photo_id
    return None
