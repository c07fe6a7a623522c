"""
Batch Executor
==============
Runs a ListingStrategy against the enhancement backends.

Photos run concurrently (bounded worker pool); each photo's tools run
strictly in order, every tool's output feeding the next. Multi-step tools
are interpreted from their ToolPipeline, so the executor has no per-tool
branches.

Failure policy per provider call:
- RateLimited: retried up to max_retries, waiting retry_after or a
  linear backoff
- ProviderUnavailable / ProviderTimeout: switch once to the route's
  fallback provider when one is registered, else fail the tool
- InvalidInput: fail the tool
A failing step marked fallback_to_previous keeps the previous output.
Any other tool failure stops that photo only.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout, as_completed
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from .provider_router import ProviderRouter, Route
from .rate_limiter import RateLimiter
from .tools import get_pipeline
from ..config.settings import ExecutionSettings
from ..errors import ProviderError, ProviderTimeout, ProviderUnavailable, RateLimited
from ..models.enums import ProviderId, ToolId
from ..models.results import PhotoProcessingResult, ToolResult
from ..models.strategy import EnhancementDecision, ListingStrategy, PhotoStrategy
from ..providers.enhancement.base import BaseEnhancementProvider

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "run cancelled"


class BatchExecutor:
    """
    Strategy executor.

    Usage:
        executor = BatchExecutor(registry, ProviderRouter(), RateLimiter(10))
        results = executor.execute(strategy, concurrency=2)
    """

    def __init__(
        self,
        providers: Dict[ProviderId, BaseEnhancementProvider],
        router: Optional[ProviderRouter] = None,
        rate_limiter: Optional[RateLimiter] = None,
        settings: Optional[ExecutionSettings] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the executor.

        Args:
            providers: Registered backends keyed by routed provider id
            router: Tool to provider resolution
            rate_limiter: Shared throttle for remote providers; built from
                settings.min_interval_ms when None
            settings: Concurrency, retry and timeout policy
        """
        self.settings = settings or ExecutionSettings()
        self.providers = dict(providers)
        self.router = router or ProviderRouter(
            autoenhance_configured=ProviderId.AUTOENHANCE in self.providers
        )
        self.rate_limiter = rate_limiter or RateLimiter(self.settings.min_interval_ms / 1000.0)
        self._sleep = sleep
        self._clock = clock

    def execute(
        self,
        strategy: ListingStrategy,
        photo_refs: Optional[Mapping[str, str]] = None,
        concurrency: Optional[int] = None,
        on_photo_complete: Optional[Callable[[PhotoProcessingResult], None]] = None,
        cancel_event: Optional[threading.Event] = None,
        on_tool_start: Optional[Callable[[str, ToolId], None]] = None,
    ) -> List[PhotoProcessingResult]:
        """
        Execute every photo strategy.

        Args:
            strategy: Plan to run (read only)
            photo_refs: Photo id to input ref; the strategy's refs when None
            concurrency: Photos processed at once (settings default)
            on_photo_complete: Called as each photo finishes
            cancel_event: When set, no new tool call starts; photos not yet
                finished are returned cancelled
            on_tool_start: Called with (photo_id, tool) before each tool

        Returns:
            One result per photo, in strategy order
        """
        workers = max(1, concurrency or self.settings.concurrency)
        refs = dict(photo_refs or {})
        cancel_event = cancel_event or threading.Event()
        by_id: Dict[str, PhotoProcessingResult] = {}

        logger.info(
            "Executing %d photos, %d decisions (concurrency: %d)",
            len(strategy.photos), strategy.total_decisions, workers,
        )
        start = self._clock()

        calls = self._call_pool(workers)
        try:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='photo') as pool:
                future_to_photo = {
                    pool.submit(
                        self._process_photo,
                        photo,
                        refs.get(photo.photo_id, photo.photo_ref),
                        cancel_event,
                        on_tool_start,
                        calls,
                    ): photo
                    for photo in strategy.photos
                }

                for future in as_completed(future_to_photo):
                    photo = future_to_photo[future]
                    try:
                        result = future.result()
                    except Exception as e:
                        logger.exception("Photo %s crashed", photo.photo_id)
                        result = PhotoProcessingResult(
                            photo_id=photo.photo_id,
                            original_ref=refs.get(photo.photo_id, photo.photo_ref),
                            role=photo.role,
                            confidence=photo.confidence,
                            error=f"unexpected error: {e}",
                        )
                    by_id[result.photo_id] = result
                    if on_photo_complete:
                        on_photo_complete(result)
        finally:
            calls.shutdown(wait=False, cancel_futures=True)

        results = [by_id[photo.photo_id] for photo in strategy.photos]
        succeeded = sum(1 for r in results if r.success)
        logger.info(
            "Execution complete: %d/%d photos in %.1fs",
            succeeded, len(results), self._clock() - start,
        )
        return results

    def _process_photo(
        self,
        photo: PhotoStrategy,
        input_ref: str,
        cancel_event: threading.Event,
        on_tool_start: Optional[Callable[[str, ToolId], None]],
        calls: ThreadPoolExecutor,
    ) -> PhotoProcessingResult:
        result = PhotoProcessingResult(
            photo_id=photo.photo_id,
            original_ref=input_ref,
            role=photo.role,
            confidence=photo.confidence,
        )
        start = self._clock()
        current = input_ref

        if cancel_event.is_set():
            result.cancelled = True
            result.error = CANCELLED_MESSAGE
            return result

        for decision in photo.decisions:
            if cancel_event.is_set():
                result.cancelled = True
                result.error = CANCELLED_MESSAGE
                break

            if on_tool_start:
                on_tool_start(photo.photo_id, decision.tool)

            tool_result = self.run_tool(decision, current, calls)
            result.tool_results.append(tool_result)
            result.total_cost += tool_result.cost

            if not tool_result.success:
                result.error = f"{decision.tool.value}: {tool_result.error}"
                logger.warning("Photo %s stopped at %s: %s", photo.photo_id, decision.tool.value, tool_result.error)
                break
            current = tool_result.output_ref

        result.total_time_ms = int((self._clock() - start) * 1000)
        result.total_cost = round(result.total_cost, 4)
        if result.error is None:
            result.success = True
            result.final_ref = current
        return result

    def run_tool(
        self,
        decision: EnhancementDecision,
        input_ref: str,
        calls: Optional[ThreadPoolExecutor] = None,
    ) -> ToolResult:
        """
        Run every step of a tool's pipeline on one image.

        Args:
            decision: Tool, preset and priority to apply
            input_ref: Ref of the image the first step reads
            calls: Pool bounding each provider call; a private one is
                used when None

        Returns:
            ToolResult, success False when a non-fallback step failed
        """
        tool = decision.tool
        route = self.router.resolve(tool)
        start = self._clock()
        result = ToolResult(tool=tool, preset=decision.preset, input_ref=input_ref, provider=route.provider)
        current = input_ref
        own_pool = calls is None
        if own_pool:
            calls = self._call_pool(1)
        try:
            self._run_steps(decision, route, result, current, calls, start)
        finally:
            if own_pool:
                calls.shutdown(wait=False, cancel_futures=True)
        return result

    def _run_steps(
        self,
        decision: EnhancementDecision,
        route: Route,
        result: ToolResult,
        current: str,
        calls: ThreadPoolExecutor,
        start: float,
    ) -> None:
        tool = decision.tool
        for step in get_pipeline(tool):
            params = dict(step.params)
            params.update({
                'preset': decision.preset,
                'pass': step.name,
                'timeout': self.settings.tool_timeout_seconds,
            })

            try:
                current, provider_id = self._invoke(tool, current, params, route, result, calls)
            except ProviderError as e:
                if step.fallback_to_previous and result.steps_completed:
                    logger.warning(
                        "%s step %s failed, keeping previous output: %s", tool.value, step.name, e,
                    )
                    result.fallback_used = True
                    continue
                result.error = str(e)
                result.time_ms = int((self._clock() - start) * 1000)
                return

            result.provider = provider_id
            result.steps_completed.append(step.name)

        result.success = True
        result.output_ref = current
        result.cost = self.router.resolve(tool).estimated_cost
        result.time_ms = int((self._clock() - start) * 1000)
        logger.info("%s applied via %s in %dms", tool.value, result.provider.value, result.time_ms)

    def _invoke(
        self,
        tool: ToolId,
        image_ref: str,
        params: Dict,
        route: Route,
        result: ToolResult,
        calls: ThreadPoolExecutor,
    ) -> Tuple[str, ProviderId]:
        """Call the routed provider under the retry and fallback policy."""
        provider_id = route.provider
        switched = False
        rate_retries = 0

        while True:
            result.attempts += 1
            try:
                provider = self._provider_for(provider_id, tool)
                return self._call(provider, tool, image_ref, params, calls), provider_id
            except RateLimited as e:
                if rate_retries >= self.settings.max_retries:
                    raise
                rate_retries += 1
                delay = e.retry_after if e.retry_after is not None else \
                    self.settings.retry_delay_seconds * rate_retries
                logger.info("%s rate limited, retry %d in %.1fs", tool.value, rate_retries, delay)
                self._sleep(delay)
            except ProviderUnavailable as e:
                fallback = route.fallback_provider
                if switched or fallback is None or fallback not in self.providers:
                    raise
                logger.warning(
                    "%s unavailable on %s (%s), falling back to %s",
                    tool.value, provider_id.value, e, fallback.value,
                )
                switched = True
                provider_id = fallback

    def _provider_for(self, provider_id: ProviderId, tool: ToolId) -> BaseEnhancementProvider:
        provider = self.providers.get(provider_id)
        if provider is None or not provider.supports(tool):
            raise ProviderUnavailable(f"No {provider_id.value} provider configured for {tool.value}", provider_id.value)
        return provider

    def _call(
        self,
        provider: BaseEnhancementProvider,
        tool: ToolId,
        image_ref: str,
        params: Dict,
        calls: ThreadPoolExecutor,
    ) -> str:
        """
        One provider call, rate limited when remote and bounded in time.

        Exceptions outside the provider error taxonomy are logged and
        reported as ProviderUnavailable.
        """
        if provider.is_remote:
            self.rate_limiter.acquire()

        future = calls.submit(provider.invoke, tool, image_ref, params)
        try:
            return future.result(timeout=self.settings.tool_timeout_seconds)
        except FutureTimeout:
            future.cancel()
            raise ProviderTimeout(
                f"{provider.get_provider_name()} {tool.value} exceeded {self.settings.tool_timeout_seconds:.0f}s",
                provider.get_provider_type(),
            )
        except ProviderError:
            raise
        except Exception as e:
            logger.exception("%s failed on %s", provider.get_provider_name(), tool.value)
            raise ProviderUnavailable(
                f"{provider.get_provider_name()} {tool.value} failed: {e}",
                provider.get_provider_type(),
            ) from e

    @staticmethod
    def _call_pool(workers: int) -> ThreadPoolExecutor:
        # Hung calls must not block shutdown, so callers shut down with wait=False
        return ThreadPoolExecutor(max_workers=workers * 2, thread_name_prefix='provider-call')
