# /gas_oracle/core/oracle.py
from typing import List

from gas_oracle.adapters.base import AbstractBlockSource
from gas_oracle.core.models import Block, BlockRemoved
from gas_oracle.core.percentile import percentile
from gas_oracle.core.reconciler import ChainEvent, ReconciliationEngine, DEFAULT_RETENTION_DEPTH
from gas_oracle.core.window import RollingGasPriceWindow, DEFAULT_CAPACITY


class GasOracle:
    """
    The rolling gas price state of one chain: reconciliation engine plus the
    window it feeds. Constructed once and owned by the poller, which is its
    only writer; query methods may be called from anywhere on the same loop.
    """
    def __init__(self, block_source: AbstractBlockSource, window_capacity: int = DEFAULT_CAPACITY,
                 retention_depth: int = DEFAULT_RETENTION_DEPTH):
        self.engine = ReconciliationEngine(block_source, retention_depth)
        self.window = RollingGasPriceWindow(window_capacity)

    async def reconcile(self, candidate: Block) -> List[ChainEvent]:
        events = await self.engine.reconcile(candidate)
        self.apply(events)
        return events

    def apply(self, events: List[ChainEvent]):
        for event in events:
            if isinstance(event, BlockRemoved):
                self.window.apply_remove(event.block_hash)
            else:
                self.window.apply_add(event.block)

    def reset(self):
        """Empties engine and window together so they never disagree."""
        self.engine.reset()
        self.window.clear()

    def get_percentile(self, p: int) -> int:
        return percentile(self.window.snapshot(), p)

    def get_number_of_blocks(self) -> int:
        return self.window.size()

    def get_latest_block_number(self) -> int:
        tip = self.engine.tip
        return tip.number if tip else 0
