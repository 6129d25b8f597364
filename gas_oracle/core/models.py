# /gas_oracle/core/models.py
# Normalised chain data. Blocks arrive either as web3 AttributeDicts (ints and
# HexBytes) or as raw JSON-RPC dicts (hex strings); both end up as the same model.
from typing import Any, List, Mapping, Optional
from pydantic import BaseModel, Field
from web3 import Web3

from gas_oracle.core.errors import BlockSourceError

def to_hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value)
    return str(value).lower()

def to_int_hexsafe(value: Any) -> Optional[int]:
    """Parses an int or a hex/decimal string. Returns ``None`` for anything malformed."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.lower().startswith("0x") else int(value)
        except ValueError:
            return None
    return None

class Transaction(BaseModel):
    gas_price: Optional[int] = None  # None when the node returned something unparseable
    sender: str

    class Config:
        frozen = True

    @classmethod
    def from_rpc(cls, raw: Mapping[str, Any]) -> 'Transaction':
        return cls(gas_price=to_int_hexsafe(raw.get("gasPrice")), sender=to_hex(raw.get("from")))

class Block(BaseModel):
    number: int
    hash: str
    parent_hash: str
    miner: str
    transactions: List[Transaction] = Field(default_factory=list)

    class Config:
        frozen = True

    @classmethod
    def from_rpc(cls, raw: Mapping[str, Any]) -> 'Block':
        """Builds a Block from a JSON-RPC ``eth_getBlockBy*`` result fetched with full transactions."""
        try:
            number = to_int_hexsafe(raw["number"])
            if number is None:
                raise ValueError(f"unparseable block number {raw['number']!r}")
            transactions = [
                Transaction.from_rpc(tx) for tx in raw.get("transactions", [])
                # Hash-only transaction lists carry no gas price to observe.
                if isinstance(tx, Mapping)
            ]
            return cls(
                number=number,
                hash=to_hex(raw["hash"]),
                parent_hash=to_hex(raw["parentHash"]),
                miner=to_hex(raw["miner"]),
                transactions=transactions,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise BlockSourceError(f"Malformed block payload: {e}") from e

    def header(self) -> 'BlockHeader':
        return BlockHeader(number=self.number, hash=self.hash, parent_hash=self.parent_hash)

class BlockHeader(BaseModel):
    """The part of a block the reconciler retains once its observation has been recorded."""
    number: int
    hash: str
    parent_hash: str

    class Config:
        frozen = True

class BlockAdded(BaseModel):
    block: Block

    class Config:
        frozen = True

class BlockRemoved(BaseModel):
    block: BlockHeader

    class Config:
        frozen = True

    @property
    def block_hash(self) -> str:
        return self.block.hash
