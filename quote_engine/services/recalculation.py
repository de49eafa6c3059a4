"""Live recalculation of the quote while the booking form is being edited.

Every ``submit()`` bumps a generation counter. Edits inside the debounce
window collapse into one computation, and a finished computation only gets
published if its generation is still the newest one and its breakdown differs
from the quote already on screen.
"""
import asyncio
import logging
from typing import Callable, List, Optional, Set

from quote_engine.core.config import settings
from quote_engine.core.enums import RecalcOutcome, RecalcState
from quote_engine.core.errors import InvariantViolationError
from quote_engine.core.metrics import recalculations
from quote_engine.core.scheduling import AsyncioScheduler, ScheduledTask, Scheduler
from quote_engine.schemas.quote import BookingForm, Quote
from quote_engine.services.pricing import PricingOracle, calculate_quote

logger = logging.getLogger(__name__)


class RecalculationController:
    def __init__(
        self,
        oracle: PricingOracle,
        scheduler: Optional[Scheduler] = None,
        on_publish: Optional[Callable[[Quote], None]] = None,
        on_clear: Optional[Callable[[], None]] = None,
        on_state: Optional[Callable[[RecalcState], None]] = None,
        debounce_ms: Optional[int] = None,
        strict: Optional[bool] = None,
    ):
        self.oracle = oracle
        self.scheduler = scheduler or AsyncioScheduler()
        self.on_publish = on_publish
        self.on_clear = on_clear
        self.on_state = on_state
        self.debounce = (debounce_ms if debounce_ms is not None else settings.DEBOUNCE_MS) / 1000
        self.strict = settings.STRICT_INVARIANTS if strict is None else strict

        self._state = RecalcState.IDLE
        self._generation = 0
        self._current: Optional[Quote] = None
        self._timer: Optional[ScheduledTask] = None
        self._inflight: Set[asyncio.Task] = set()
        self._errors: List[BaseException] = []
        self._quiet = asyncio.Event()
        self._quiet.set()
        self._closed = False

    @property
    def state(self) -> RecalcState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def current_quote(self) -> Optional[Quote]:
        return self._current

    def submit(self, form: BookingForm) -> None:
        """Called by the host on every form change. Never raises for bad input."""
        if self._closed:
            raise RuntimeError("recalculation controller is closed")

        self._cancel_timer()
        self._generation += 1

        if not form.is_computable:
            self._clear()
            return

        generation = self._generation
        self._set_state(RecalcState.PENDING_VALIDATE)
        self._set_state(RecalcState.DEBOUNCING)
        self._quiet.clear()
        self._timer = self.scheduler.call_later(
            self.debounce, lambda: self._start(generation, form)
        )

    async def wait_settled(self) -> None:
        """Wait until no debounce is pending and nothing is in flight.

        Re-raises invariant violations collected in strict mode.
        """
        await self._quiet.wait()
        if self._errors:
            error = self._errors.pop(0)
            self._errors.clear()
            raise error

    async def aclose(self) -> None:
        """Release the debounce timer and cancel in-flight computations."""
        self._closed = True
        self._cancel_timer()
        tasks = list(self._inflight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()
        self._quiet.set()
        logger.debug(f"Recalculation controller closed at generation {self._generation}")

    def _set_state(self, state: RecalcState) -> None:
        if state == self._state:
            return
        logger.debug(f"Recalculation state {self._state} -> {state}")
        self._state = state
        if self.on_state is not None:
            self.on_state(state)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            if not self._timer.cancelled():
                self._timer.cancel()
                logger.debug(f"Debounce restarted at generation {self._generation}")
            self._timer = None

    def _clear(self) -> None:
        had_quote = self._current is not None
        self._current = None
        self._set_state(RecalcState.IDLE)
        self._mark_quiet_if_done()
        if had_quote and self.on_clear is not None:
            self.on_clear()

    def _mark_quiet_if_done(self) -> None:
        if self._timer is None and not self._inflight:
            self._quiet.set()

    def _start(self, generation: int, form: BookingForm) -> None:
        self._timer = None
        if self._closed or generation != self._generation:
            self._mark_quiet_if_done()
            return
        self._set_state(RecalcState.COMPUTING)
        task = asyncio.get_running_loop().create_task(self._compute(generation, form))
        self._inflight.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self._errors.append(task.exception())
        self._mark_quiet_if_done()

    async def _compute(self, generation: int, form: BookingForm) -> None:
        try:
            quote = await calculate_quote(form, self.oracle, generation=generation)
        except InvariantViolationError as e:
            recalculations.labels(outcome=str(RecalcOutcome.REJECTED)).inc()
            logger.error(f"Refusing to publish generation {generation}: {e}")
            if self.strict:
                raise
            if generation == self._generation:
                self._set_state(RecalcState.SETTLED)
            return

        if generation != self._generation:
            recalculations.labels(outcome=str(RecalcOutcome.STALE)).inc()
            logger.debug(
                f"Discarding stale quote from generation {generation} "
                f"(current is {self._generation})"
            )
            return

        if quote.is_fallback:
            self._set_state(RecalcState.ERROR_FALLBACK)
        self._commit(quote)

    def _commit(self, quote: Quote) -> None:
        previous = self._current
        if (
            previous is not None
            and previous.breakdown == quote.breakdown
            and previous.is_fallback == quote.is_fallback
        ):
            recalculations.labels(outcome=str(RecalcOutcome.UNCHANGED)).inc()
            self._set_state(RecalcState.SETTLED)
            return

        self._current = quote
        self._set_state(RecalcState.SETTLED)
        outcome = RecalcOutcome.FALLBACK if quote.is_fallback else RecalcOutcome.PUBLISHED
        recalculations.labels(outcome=str(outcome)).inc()
        logger.info(
            f"Published quote generation {quote.generation}: total {quote.breakdown.total:.2f}"
            f"{' (fallback)' if quote.is_fallback else ''}"
        )
        if self.on_publish is not None:
            try:
                self.on_publish(quote)
            except Exception:
                logger.exception("Quote listener failed")
