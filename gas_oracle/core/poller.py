# /gas_oracle/core/poller.py
# Drives reconciliation: one bootstrap fetch at startup, then a "latest" fetch
# every polling period. Owns the single-reconciliation-in-flight invariant.

import asyncio
from enum import Enum
from typing import Dict, Optional, Type

from gas_oracle.adapters.base import AbstractBlockSource
from gas_oracle.core.errors import BlockSourceError, ReorgTooDeepError, WindowDesyncError
from gas_oracle.core.logger import get_logger, TICKS, TICK_FAILURES, RESYNCS
from gas_oracle.core.oracle import GasOracle

log = get_logger(__name__)

MIN_POLLING_FREQUENCY = 1
MAX_POLLING_FREQUENCY = 3600
DEFAULT_AGE_OFFSET = 50

class TickAction(str, Enum):
    SKIP = "skip"       # log, keep last-good state, wait for the next tick
    RESYNC = "resync"   # log, wipe engine and window, bootstrap again
    FATAL = "fatal"     # propagate and stop the service

# Looked up along the exception's MRO; anything unlisted is skipped.
ERROR_POLICY: Dict[Type[BaseException], TickAction] = {
    BlockSourceError: TickAction.SKIP,
    ReorgTooDeepError: TickAction.RESYNC,
    WindowDesyncError: TickAction.FATAL,
}

def action_for(error: BaseException, resync_on_deep_reorg: bool = True) -> TickAction:
    action = TickAction.SKIP
    for cls in type(error).__mro__:
        if cls in ERROR_POLICY:
            action = ERROR_POLICY[cls]
            break
    if action is TickAction.RESYNC and not resync_on_deep_reorg:
        return TickAction.SKIP
    return action

class Poller:
    """
    Feeds candidate tips from the block source into the oracle. Failures are
    handled per ``ERROR_POLICY``; only fatal ones escape ``run_loop``.
    """
    def __init__(self, oracle: GasOracle, block_source: AbstractBlockSource, polling_frequency: int = 1,
                 age_offset: int = DEFAULT_AGE_OFFSET, resync_on_deep_reorg: bool = True):
        if not MIN_POLLING_FREQUENCY <= polling_frequency <= MAX_POLLING_FREQUENCY:
            raise ValueError(
                f"Polling frequency must be between {MIN_POLLING_FREQUENCY} and {MAX_POLLING_FREQUENCY} seconds."
            )
        self.oracle = oracle
        self.block_source = block_source
        self.polling_frequency = polling_frequency
        self.age_offset = age_offset
        self.resync_on_deep_reorg = resync_on_deep_reorg

        self._lock = asyncio.Lock()
        self._in_flight: Optional[asyncio.Task] = None
        self._fatal: Optional[BaseException] = None
        self._wake = asyncio.Event()
        self._stopping = False

    async def bootstrap(self) -> bool:
        """Seeds the window from a block ``age_offset`` below the head. Best effort."""
        async with self._lock:
            try:
                await self._seed()
            except Exception as e:
                await self._handle_failure(e, stage="bootstrap")
                return False
            return True

    async def tick(self) -> bool:
        """Reconciles the current head. Returns ``False`` if skipped or failed."""
        if self._lock.locked():
            TICKS.labels("skipped_in_flight").inc()
            log.warning("TICK_SKIPPED_RECONCILIATION_IN_FLIGHT")
            return False

        async with self._lock:
            try:
                candidate = await self.block_source.fetch_by_number("latest")
                events = await self.oracle.reconcile(candidate)
            except Exception as e:
                await self._handle_failure(e, stage="tick")
                return False

        TICKS.labels("ok").inc()
        log.debug(
            "TICK_COMPLETE",
            events=len(events),
            latest_block_number=self.oracle.get_latest_block_number(),
            number_of_blocks=self.oracle.get_number_of_blocks(),
        )
        return True

    async def run_loop(self):
        """The main async polling loop. Returns on ``stop()``, raises on a fatal error."""
        log.info("POLLER_STARTING_LOOP", polling_frequency=self.polling_frequency, age_offset=self.age_offset)
        await self.bootstrap()

        try:
            while not self._stopping:
                await self._sleep()
                if self._fatal is not None:
                    raise self._fatal
                if self._stopping:
                    break
                if self._in_flight is not None and not self._in_flight.done():
                    TICKS.labels("skipped_in_flight").inc()
                    log.warning("TICK_SKIPPED_RECONCILIATION_IN_FLIGHT")
                    continue
                self._in_flight = asyncio.create_task(self.tick())
                self._in_flight.add_done_callback(self._on_tick_done)
        finally:
            if self._in_flight is not None and not self._in_flight.done():
                self._in_flight.cancel()
            log.warning("POLLER_LOOP_STOPPED")

    def stop(self):
        self._stopping = True
        self._wake.set()

    async def _seed(self):
        latest = await self.block_source.fetch_by_number("latest")
        start = max(0, latest.number - self.age_offset)
        candidate = latest if start == latest.number else await self.block_source.fetch_by_number(start)
        await self.oracle.reconcile(candidate)
        log.info("BOOTSTRAP_COMPLETE", seeded_from=candidate.number, latest=latest.number)

    async def _handle_failure(self, error: Exception, stage: str):
        action = action_for(error, self.resync_on_deep_reorg)
        kind = type(error).__name__
        TICKS.labels("failed").inc()
        TICK_FAILURES.labels(kind).inc()

        if action is TickAction.FATAL:
            log.critical("POLLER_FATAL_ERROR", stage=stage, kind=kind, error=str(error), exc_info=True)
            raise error

        log.error("POLLER_TICK_FAILED", stage=stage, kind=kind, action=action.value, error=str(error))
        if action is TickAction.RESYNC:
            await self._resync()

    async def _resync(self):
        RESYNCS.inc()
        log.warning("POLLER_RESYNCING", dropped_blocks=self.oracle.get_number_of_blocks())
        self.oracle.reset()
        try:
            await self._seed()
        except BlockSourceError as e:
            # The engine is empty, so the next tick starts a fresh chain from the head.
            log.error("POLLER_RESYNC_SEED_FAILED", error=str(e))

    async def _sleep(self):
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=self.polling_frequency)
        except asyncio.TimeoutError:
            pass

    def _on_tick_done(self, task: asyncio.Task):
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._fatal = error
            self._wake.set()
