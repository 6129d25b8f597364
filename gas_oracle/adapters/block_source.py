# /gas_oracle/adapters/block_source.py
# Block Source backed by an Ethereum JSON-RPC endpoint.

import asyncio
from typing import Union

import aiohttp
from web3 import AsyncWeb3, AsyncHTTPProvider
from web3.exceptions import BlockNotFound, Web3Exception
from web3.middleware import ExtraDataToPOAMiddleware

from gas_oracle.adapters.base import AbstractBlockSource
from gas_oracle.core.decorators import retriable_network_call
from gas_oracle.core.errors import BlockSourceError
from gas_oracle.core.logger import get_logger
from gas_oracle.core.models import Block

log = get_logger(__name__)

class Web3BlockSource(AbstractBlockSource):
    def __init__(self, url: str, timeout: int = 10):
        self.w3 = AsyncWeb3(AsyncHTTPProvider(url, request_kwargs={"timeout": aiohttp.ClientTimeout(total=timeout)}))
        # PoA chains carry oversized extraData that the default formatters reject.
        self.w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        log.info("WEB3_BLOCK_SOURCE_INITIALIZED", timeout=timeout)

    @retriable_network_call
    async def fetch_by_hash(self, block_hash: str) -> Block:
        return await self._get_block(block_hash)

    @retriable_network_call
    async def fetch_by_number(self, number: Union[int, str]) -> Block:
        return await self._get_block(number)

    async def _get_block(self, identifier: Union[int, str]) -> Block:
        try:
            raw = await self.w3.eth.get_block(identifier, full_transactions=True)
        except BlockNotFound as e:
            raise BlockSourceError(f"Block {identifier} not found.") from e
        except (Web3Exception, aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
            raise BlockSourceError(f"Failed to fetch block {identifier}: {e}") from e
        log.debug("BLOCK_FETCHED", identifier=str(identifier), number=raw.get("number"))
        return Block.from_rpc(raw)

    async def close(self):
        await self.w3.provider.disconnect()
        log.info("WEB3_BLOCK_SOURCE_CLOSED")
