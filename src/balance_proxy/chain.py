from collections.abc import Mapping, Sequence
from typing import Any, Protocol, Self

from eth_typing import ChecksumAddress
from hexbytes import HexBytes
from web3 import AsyncBaseProvider, AsyncWeb3
from web3.types import RPCEndpoint, TxParams

from balance_proxy.connection import async_connection_manager
from balance_proxy.exceptions.simulation import RpcError
from balance_proxy.types.aliases import ChainId


class ChainReader(Protocol):
    """
    Read and simulate access to one chain. Every method is a suspension point.
    """

    async def chain_id(self) -> ChainId: ...

    async def call(
        self,
        to: ChecksumAddress,
        data: bytes,
        *,
        from_: ChecksumAddress | None = None,
        value: int = 0,
    ) -> bytes:
        """
        Execute a read-only call at the latest block. Reverts propagate as web3 exceptions.
        """

    async def batch_call(self, calls: Sequence[tuple[ChecksumAddress, bytes]]) -> list[bytes]:
        """
        Execute several read-only calls in one request, returning results in order.
        """

    async def get_balance(self, account: ChecksumAddress) -> int: ...

    async def get_gas_price(self) -> int: ...

    async def simulate(self, payload: Mapping[str, Any]) -> list[dict[str, Any]]:
        """
        Run `eth_simulateV1` against the latest block and return the simulated blocks.
        """

    async def wait_for_transaction_receipt(self, tx_hash: HexBytes) -> Mapping[str, Any]: ...


class Web3ChainClient:
    """
    A `ChainReader` backed by an `AsyncWeb3` instance.
    """

    def __init__(self, w3: AsyncWeb3[AsyncBaseProvider], *, receipt_timeout: float = 120) -> None:
        self.w3 = w3
        self.receipt_timeout = receipt_timeout

    @classmethod
    def from_connection(cls, chain_id: ChainId | None = None, **kwargs: Any) -> Self:
        """
        Build a client over the Web3 instance registered with the connection manager for the
        given chain, or the default chain if none is given.
        """

        if chain_id is None:
            chain_id = async_connection_manager.default_chain_id
        return cls(async_connection_manager.get_web3(chain_id), **kwargs)

    async def chain_id(self) -> ChainId:
        return await self.w3.eth.chain_id

    async def call(
        self,
        to: ChecksumAddress,
        data: bytes,
        *,
        from_: ChecksumAddress | None = None,
        value: int = 0,
    ) -> bytes:
        params = TxParams(to=to, data=HexBytes(data))
        if from_ is not None:
            params["from"] = from_
        if value:
            params["value"] = value
        return bytes(await self.w3.eth.call(params))

    async def batch_call(self, calls: Sequence[tuple[ChecksumAddress, bytes]]) -> list[bytes]:
        if not calls:
            return []

        async with self.w3.batch_requests() as batch:
            for to, data in calls:
                batch.add(self.w3.eth.call(TxParams(to=to, data=HexBytes(data))))
            results = await batch.async_execute()
        return [bytes(result) for result in results]

    async def get_balance(self, account: ChecksumAddress) -> int:
        return await self.w3.eth.get_balance(account)

    async def get_gas_price(self) -> int:
        return await self.w3.eth.gas_price

    async def simulate(self, payload: Mapping[str, Any]) -> list[dict[str, Any]]:
        method = "eth_simulateV1"
        resp = await self.w3.provider.make_request(
            method=RPCEndpoint(method),
            params=[payload, "latest"],
        )
        if "error" in resp:
            raise RpcError(method=method, error=str(resp["error"]))
        return list(resp["result"])

    async def wait_for_transaction_receipt(self, tx_hash: HexBytes) -> Mapping[str, Any]:
        return await self.w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self.receipt_timeout
        )
