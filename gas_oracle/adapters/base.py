# /gas_oracle/adapters/base.py
# - Defines the AbstractBlockSource interface.
# - The reconciler and the poller depend only on this, never on a transport.

from typing import Union

from gas_oracle.core.models import Block

class AbstractBlockSource:
    """
    Read-only access to the canonical chain. Every fetch is an independent,
    idempotent read; implementations raise ``BlockSourceError`` on any
    failure, including an unknown block.
    """
    async def fetch_by_hash(self, block_hash: str) -> Block:
        """Returns the block with the given hash, transactions included."""
        raise NotImplementedError

    async def fetch_by_number(self, number: Union[int, str]) -> Block:
        """Returns the canonical block at ``number``, or the head for ``"latest"``."""
        raise NotImplementedError

    async def close(self):
        """Releases transport resources."""
        pass
