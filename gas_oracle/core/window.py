# /gas_oracle/core/window.py
from collections import deque
from typing import Deque, List, NamedTuple, Optional, Set

from gas_oracle.core.errors import WindowDesyncError
from gas_oracle.core.logger import get_logger, BLOCKS_ADDED, BLOCKS_REMOVED, BLOCKS_SKIPPED
from gas_oracle.core.models import Block

log = get_logger(__name__)

DEFAULT_CAPACITY = 200

class WindowEntry(NamedTuple):
    block_hash: str
    min_gas_price: int

def min_gas_price(block: Block) -> Optional[int]:
    """
    The cheapest gas price paid by anyone other than the block's miner, or
    ``None`` when the block offers no usable market observation.
    """
    prices = [tx.gas_price for tx in block.transactions if tx.sender != block.miner]
    if not prices or any(price is None for price in prices):
        return None
    lowest = min(prices)
    if lowest <= 0:
        return None
    return lowest

class RollingGasPriceWindow:
    """
    Capacity-bounded, oldest-first sequence of per-block minimum gas prices.
    Appends happen at the newest end only; removals pop the newest end and
    must name the block that is there.
    """
    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("Window capacity must be at least 1.")
        self.capacity = capacity
        self._entries: Deque[WindowEntry] = deque()
        self._recorded: Set[str] = set()

    def apply_add(self, block: Block) -> bool:
        """Records the block's observation. Returns ``False`` when the block was skipped."""
        price = min_gas_price(block)
        if price is None:
            BLOCKS_SKIPPED.inc()
            log.debug("BLOCK_SKIPPED_NO_OBSERVATION", block_hash=block.hash, number=block.number)
            return False

        self._entries.append(WindowEntry(block.hash, price))
        self._recorded.add(block.hash)
        if len(self._entries) > self.capacity:
            evicted = self._entries.popleft()
            self._recorded.discard(evicted.block_hash)
        BLOCKS_ADDED.inc()
        log.info("BLOCK_ADDED", block_hash=block.hash, number=block.number, min_gas_price=price)
        return True

    def apply_remove(self, block_hash: str) -> bool:
        """
        Pops the newest entry, which must belong to ``block_hash``. A block that
        never produced an entry is a no-op and returns ``False``.
        """
        if block_hash not in self._recorded:
            log.debug("BLOCK_REMOVED_WITHOUT_ENTRY", block_hash=block_hash)
            return False

        popped = self._entries.pop()
        self._recorded.discard(popped.block_hash)
        if popped.block_hash != block_hash:
            log.critical("WINDOW_DESYNC", expected=block_hash, found=popped.block_hash)
            raise WindowDesyncError(
                f"Received notification to remove block {block_hash} but found {popped.block_hash} on the top of the stack."
            )
        BLOCKS_REMOVED.inc()
        log.info("BLOCK_REMOVED", block_hash=block_hash, min_gas_price=popped.min_gas_price)
        return True

    def snapshot(self) -> List[int]:
        return [entry.min_gas_price for entry in self._entries]

    def entries(self) -> List[WindowEntry]:
        return list(self._entries)

    def size(self) -> int:
        return len(self._entries)

    def clear(self):
        self._entries.clear()
        self._recorded.clear()

    def __len__(self) -> int:
        return len(self._entries)
