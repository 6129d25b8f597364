# /gas_oracle/core/reconciler.py
from collections import deque
from typing import Deque, Dict, List, Optional, Union

from gas_oracle.adapters.base import AbstractBlockSource
from gas_oracle.core.errors import BlockSourceError, ReorgTooDeepError
from gas_oracle.core.logger import get_logger, REORGS
from gas_oracle.core.models import Block, BlockAdded, BlockHeader, BlockRemoved

log = get_logger(__name__)

DEFAULT_RETENTION_DEPTH = 256

ChainEvent = Union[BlockAdded, BlockRemoved]

class ReconciliationEngine:
    """
    Tracks the canonical prefix of the chain and turns each new candidate tip
    into the ordered removals and additions that bring the prefix in line
    with it.

    Missing ancestors of the candidate are fetched from the block source
    before anything is committed, so a failed fetch leaves the engine exactly
    as it was. Once ``reconcile`` returns, the prefix already reflects the
    returned events and the caller must apply all of them, in order.
    """
    def __init__(self, block_source: AbstractBlockSource, retention_depth: int = DEFAULT_RETENTION_DEPTH):
        if retention_depth < 1:
            raise ValueError("Retention depth must be at least 1.")
        self.block_source = block_source
        self.retention_depth = retention_depth
        self._retained: Deque[BlockHeader] = deque()
        self._index: Dict[str, BlockHeader] = {}

    @property
    def tip(self) -> Optional[BlockHeader]:
        return self._retained[-1] if self._retained else None

    def retained_hashes(self) -> List[str]:
        return [header.hash for header in self._retained]

    def reset(self):
        self._retained.clear()
        self._index.clear()
        log.warning("RECONCILER_RESET")

    async def reconcile(self, candidate: Block) -> List[ChainEvent]:
        tip = self.tip
        if tip is None:
            self._push(candidate)
            return [BlockAdded(block=candidate)]

        if candidate.hash == tip.hash:
            return []

        if candidate.parent_hash == tip.hash:
            self._push(candidate)
            return [BlockAdded(block=candidate)]

        if candidate.hash in self._index:
            # A lagging node reporting a block we already hold below the tip.
            log.info("STALE_CANDIDATE_IGNORED", block_hash=candidate.hash, number=candidate.number, tip=tip.hash)
            return []

        branch = await self._resolve_branch(candidate)
        fork_point = branch[0].parent_hash

        events: List[ChainEvent] = []
        while self.tip.hash != fork_point:
            events.append(BlockRemoved(block=self._pop()))
        for block in branch:
            self._push(block)
            events.append(BlockAdded(block=block))

        removed = len(events) - len(branch)
        if removed:
            REORGS.inc()
            log.warning("REORG_DETECTED", depth=removed, fork_point=fork_point, new_tip=candidate.hash, old_tip=tip.hash)
        else:
            log.info("GAP_FILLED", fetched=len(branch) - 1, new_tip=candidate.hash)
        return events

    async def _resolve_branch(self, candidate: Block) -> List[Block]:
        """
        Walks the candidate's ancestry back to the first block whose parent is
        retained. Returns the new branch oldest-first, ending with the candidate.
        """
        oldest = self._retained[0]
        branch = [candidate]
        while branch[-1].parent_hash not in self._index:
            current = branch[-1]
            if len(branch) > self.retention_depth or current.number <= oldest.number:
                raise ReorgTooDeepError(
                    f"No common ancestor for block {candidate.hash} within the {len(self._retained)} retained blocks.",
                    candidate=candidate,
                )
            parent = await self.block_source.fetch_by_hash(current.parent_hash)
            if parent.hash != current.parent_hash or parent.number != current.number - 1:
                raise BlockSourceError(
                    f"Block source returned {parent.hash} (#{parent.number}) as the parent of {current.hash} (#{current.number})."
                )
            branch.append(parent)
        branch.reverse()
        return branch

    def _push(self, block: Block):
        if len(self._retained) >= self.retention_depth:
            expired = self._retained.popleft()
            del self._index[expired.hash]
        header = block.header()
        self._retained.append(header)
        self._index[header.hash] = header

    def _pop(self) -> BlockHeader:
        header = self._retained.pop()
        del self._index[header.hash]
        return header
