# /gas_oracle/adapters/mock.py
# - In-memory Block Source for tests and local simulation.
# - Lets tests script forks, gaps and transport failures deterministically.

import asyncio
from typing import Dict, Iterable, List, Optional, Tuple, Union

from gas_oracle.adapters.base import AbstractBlockSource
from gas_oracle.core.errors import BlockSourceError
from gas_oracle.core.logger import get_logger
from gas_oracle.core.models import Block

log = get_logger(__name__)

MOCK_MINER = "0x00000000000000000000000000000000000000aa"

def mock_block(number: int, block_hash: str, parent_hash: str,
               transactions: Optional[Iterable[Tuple[int, str]]] = None,
               miner: str = MOCK_MINER) -> Block:
    """
    Builds a block the way a node would return it: hex quantities and
    full transaction objects. ``transactions`` is a list of (gas price, sender).
    """
    if transactions is None:
        transactions = [(number + 1, f"0xbb{number:038x}")]
    return Block.from_rpc({
        "number": hex(number),
        "hash": block_hash,
        "parentHash": parent_hash,
        "miner": miner,
        "transactions": [{"gasPrice": hex(price), "from": sender} for price, sender in transactions],
    })

class MockBlockSource(AbstractBlockSource):
    """
    A mock chain. Every block ever added stays fetchable by hash; the
    canonical mapping decides what ``fetch_by_number`` returns.
    """
    def __init__(self, blocks: Iterable[Block] = ()):
        self.blocks: Dict[str, Block] = {}
        self.canonical: Dict[int, str] = {}
        self.calls: List[Tuple[str, Union[int, str]]] = []
        self.gate: Optional[asyncio.Event] = None
        self._failures_left = 0
        for block in blocks:
            self.add(block)
        log.info("MOCK_BLOCK_SOURCE_INITIALIZED", blocks=len(self.blocks))

    def add(self, block: Block, canonical: bool = True):
        self.blocks[block.hash] = block
        if canonical:
            # Anything above a newly canonical block belongs to the old branch.
            for number in [n for n in self.canonical if n > block.number]:
                del self.canonical[number]
            self.canonical[block.number] = block.hash

    def set_next_call_to_fail(self, count: int = 1):
        """Configure the mock to raise a transport error on the next ``count`` fetches."""
        self._failures_left = count

    async def fetch_by_hash(self, block_hash: str) -> Block:
        self.calls.append(("hash", block_hash))
        await self._before_fetch()
        block = self.blocks.get(block_hash)
        if block is None:
            raise BlockSourceError(f"Block {block_hash} not found.")
        return block

    async def fetch_by_number(self, number: Union[int, str]) -> Block:
        self.calls.append(("number", number))
        await self._before_fetch()
        if number == "latest":
            if not self.canonical:
                raise BlockSourceError("Chain is empty.")
            number = max(self.canonical)
        block_hash = self.canonical.get(number)
        if block_hash is None:
            raise BlockSourceError(f"Block {number} not found.")
        return self.blocks[block_hash]

    async def _before_fetch(self):
        if self.gate is not None:
            await self.gate.wait()
        if self._failures_left:
            self._failures_left -= 1
            log.error("MOCK_FETCH_FORCED_FAILURE")
            raise BlockSourceError("Forced failure for testing.")
