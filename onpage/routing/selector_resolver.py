"""
Selector Resolver - self-healing address resolution

Resolves an address against a document. Direct queries are retried with a
linear backoff; each miss can trigger healing (memory first, then the
recovery strategies in order). Successful resolutions feed the memory that
later healing relies on.

Never raises past its boundary: failures come back as ResolutionFailure.

Example:
    from onpage.routing.selector_resolver import SelectorResolver, ResolveOptions

    resolver = SelectorResolver(memory=SelectorMemory(storage))
    result = resolver.resolve(document, "#price", ResolveOptions(confidence_floor="medium"))
    if result.success:
        print(result.address, result.strategy, result.confidence)
"""

from typing import Callable, List, Optional, Sequence
from pydantic import BaseModel, Field
from tenacity import Retrying, RetryCallState, retry_if_exception_type, retry_if_result, stop_after_attempt, wait_incrementing
import logging
import time

from onpage.core.config import ConfidenceTier, settings
from onpage.core.document import Document, NodeRef
from onpage.core.errors import InvalidAddressError
from onpage.models.resolution import (
    HealingStrategy,
    MemoryStatistics,
    ResolutionFailure,
    ResolutionResult,
    ResolvedNode,
)
from onpage.routing.healing_strategies import DEFAULT_STRATEGIES, HealingContext, RecoveryStrategy
from onpage.routing.selector_memory import SelectorMemory, capture_record
from onpage.services.telemetry_service import TelemetryRecorder

logger = logging.getLogger(__name__)


class ResolveOptions(BaseModel):
    """Per-call resolver options."""
    max_retries: int = Field(default_factory=lambda: settings.max_retries, ge=1)
    use_fallback: bool = Field(default_factory=lambda: settings.use_fallback)
    learn: bool = Field(default_factory=lambda: settings.learn)
    confidence_floor: ConfidenceTier = Field(default_factory=lambda: settings.confidence_floor)

    @property
    def floor(self) -> float:
        return max(ConfidenceTier.LOW.threshold, self.confidence_floor.threshold)


class SelectorResolver:
    """
    Resolve addresses with retry, healing and learning.

    Dependencies are injected: memory (history + mappings), the ordered
    strategy list, optional telemetry and the sleep used between retries.
    """

    def __init__(
        self,
        memory: Optional[SelectorMemory] = None,
        strategies: Sequence[RecoveryStrategy] = DEFAULT_STRATEGIES,
        telemetry: Optional[TelemetryRecorder] = None,
        sleep: Callable[[float], None] = time.sleep,
        backoff: Optional[float] = None
    ):
        self.memory = memory if memory is not None else SelectorMemory()
        self.strategies = tuple(strategies)
        self.telemetry = telemetry
        self.sleep = sleep
        self.backoff = settings.retry_backoff if backoff is None else backoff

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(self, document: Document, address: str, options: Optional[ResolveOptions] = None) -> ResolutionResult:
        """Resolve to a single node."""
        return self._resolve(document, address, options or ResolveOptions(), multiple=False)

    def resolve_all(self, document: Document, address: str, options: Optional[ResolveOptions] = None) -> ResolutionResult:
        """Resolve to every node matching the (possibly healed) address."""
        return self._resolve(document, address, options or ResolveOptions(), multiple=True)

    def heal(
        self,
        document: Document,
        address: str,
        confidence_floor: ConfidenceTier = ConfidenceTier.LOW
    ) -> Optional[ResolvedNode]:
        """
        Find a substitute for an address that no longer resolves.

        Memory is consulted first (history record, then learned mapping);
        then each strategy in order. The first candidate at or above the
        floor wins.
        """
        minimum = max(ConfidenceTier.LOW.threshold, ConfidenceTier(confidence_floor).threshold)
        logger.debug(f"[RESOLVER] Attempting to heal selector: {address}")

        healing_id = self.telemetry.start_healing(address) if self.telemetry else None
        healed = self._from_memory(document, address, minimum)

        if healed is None:
            context = HealingContext(document, self.memory, minimum)
            for strategy in self.strategies:
                try:
                    candidate = strategy.attempt(address, context)
                except Exception as e:
                    logger.debug(f"[RESOLVER] Strategy {strategy.kind.value} failed for {address}: {e}")
                    candidate = None

                accepted = candidate is not None and candidate.confidence >= minimum
                if self.telemetry:
                    self.telemetry.record_healing_attempt(
                        healing_id,
                        strategy.kind.value,
                        accepted,
                        candidate.confidence if candidate is not None else None
                    )
                if accepted:
                    healed = candidate
                    break

        if self.telemetry:
            self.telemetry.end_healing(healing_id, healed is not None)

        if healed is not None:
            logger.info(
                f"[RESOLVER] Self-healed selector: {address} -> {healed.address} "
                f"({healed.strategy.value}, {healed.confidence:.2f})"
            )
        return healed

    def clear_memory(self):
        self.memory.clear()

    def get_statistics(self) -> MemoryStatistics:
        return self.memory.statistics()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve(self, document: Document, address: str, options: ResolveOptions, multiple: bool) -> ResolutionResult:
        attempts = 0

        def attempt_once() -> Optional[ResolvedNode]:
            nonlocal attempts
            attempts += 1

            # Invalid addresses raise here and are retried without healing
            nodes = document.query(address)
            if nodes:
                return ResolvedNode(
                    element=nodes[0],
                    elements=nodes if multiple else [nodes[0]],
                    address=address,
                    requested_address=address,
                    confidence=1.0,
                    strategy=HealingStrategy.DIRECT,
                    attempts=attempts,
                )

            if not options.use_fallback:
                return None

            healed = self.heal(document, address, options.confidence_floor)
            if healed is None:
                return None
            if multiple:
                nodes = self._query_quietly(document, healed.address)
                if not nodes:
                    return None
                healed = healed.model_copy(update={"element": nodes[0], "elements": nodes})
            return healed.model_copy(update={"attempts": attempts})

        def exhausted(retry_state: RetryCallState) -> ResolutionFailure:
            outcome = retry_state.outcome
            if outcome is not None and outcome.failed:
                error = str(outcome.exception())
            else:
                noun = "Elements" if multiple else "Selector"
                error = f"{noun} not found: {address}"
            return ResolutionFailure(address=address, error=error, attempts=retry_state.attempt_number)

        retrying = Retrying(
            stop=stop_after_attempt(options.max_retries),
            wait=wait_incrementing(start=self.backoff, increment=self.backoff),
            retry=retry_if_result(lambda result: result is None) | retry_if_exception_type(InvalidAddressError),
            sleep=self.sleep,
            retry_error_callback=exhausted,
        )
        try:
            result = retrying(attempt_once)
        except Exception as e:
            # Anything other than a bad selector is not retried
            result = ResolutionFailure(address=address, error=str(e), attempts=attempts)

        if result.success:
            self._remember(address, result, options)
        else:
            logger.warning(f"[RESOLVER] Failed to resolve {address} after {result.attempts} attempts: {result.error}")
        return result

    def _from_memory(self, document: Document, address: str, minimum: float) -> Optional[ResolvedNode]:
        """History record whose address still resolves, then a learned mapping."""
        record = self.memory.get_record(address)
        if record is not None and record.address and record.confidence >= minimum:
            nodes = self._query_quietly(document, record.address)
            if nodes:
                return ResolvedNode(
                    element=nodes[0],
                    elements=[nodes[0]],
                    address=record.address,
                    requested_address=address,
                    confidence=record.confidence,
                    strategy=HealingStrategy.HISTORICAL,
                )

        mapping = self.memory.get_mapping(address)
        if mapping is not None and mapping.confidence >= minimum:
            nodes = self._query_quietly(document, mapping.new_address)
            if nodes:
                return ResolvedNode(
                    element=nodes[0],
                    elements=[nodes[0]],
                    address=mapping.new_address,
                    requested_address=address,
                    confidence=mapping.confidence,
                    strategy=HealingStrategy.LEARNED,
                )
        return None

    def _remember(self, address: str, result: ResolvedNode, options: ResolveOptions):
        """Record history for the requested address and learn the rewrite if healed."""
        replayed = result.strategy in (HealingStrategy.HISTORICAL, HealingStrategy.LEARNED)
        if options.learn and result.healed and not replayed and result.address != address:
            self.memory.learn(address, result.address, result.confidence)
        self.memory.record(address, capture_record(result.address, result.element, result.confidence))

    @staticmethod
    def _query_quietly(document: Document, address: str) -> List[NodeRef]:
        try:
            return document.query(address)
        except InvalidAddressError:
            return []
