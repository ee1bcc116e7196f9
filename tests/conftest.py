import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import eth_abi.abi
import pytest
from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data
from eth_typing import ChecksumAddress
from hexbytes import HexBytes
from web3.exceptions import ContractLogicError

from balance_proxy import deployments
from balance_proxy.checksum_cache import get_checksum_address
from balance_proxy.connection import async_connection_manager
from balance_proxy.functions import function_selector
from balance_proxy.funding.signers import PendingMultisigTransaction, ProposedTransaction
from balance_proxy.logging import logger
from balance_proxy.types.concrete import AbstractPublisherMessage, Publisher

USER = get_checksum_address("0x00000000000000000000000000000000000A11cE")
UNIVERSAL_ROUTER = get_checksum_address("0x3A9D48AB9751398BbFa63ad67599Bb04e4BdF98b")
BALANCE_PROXY = get_checksum_address("0x2c7E0B0e90EdF5CDE8D19759c005FD7b2a3A493d")
APPROVE_ROUTER = get_checksum_address("0x00000000000000000000000000000000000A4404")
PERMIT_ROUTER = get_checksum_address("0x00000000000000000000000000000000000FE417")
USDC = get_checksum_address("0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238")
WETH = get_checksum_address("0xfFf9976782d46CC05630D1f6eBAb18b2324d6B14")

type CallHandler = bytes | Exception | Callable[[bytes], bytes]


@pytest.fixture(autouse=True)
def _initialize_and_reset_after_each_test():
    """
    Before each test, clear/reset global values and singletons
    """
    async_connection_manager.connections.clear()
    async_connection_manager._default_chain_id = None
    deployments._registered_deployments.clear()


@pytest.fixture(scope="session", autouse=True)
def _set_balance_proxy_logging():
    """
    Set the logging level to DEBUG for the test run
    """
    logger.setLevel(logging.DEBUG)


def encode_uint(value: int) -> bytes:
    return eth_abi.abi.encode(["uint256"], [value])


class FakeChainReader:
    """
    An in-process `ChainReader`. Calls are answered by handlers registered per (address, selector),
    simulations are answered in order from a queue.
    """

    def __init__(self, chain_id: int = 11155111) -> None:
        self._chain_id = chain_id
        self.handlers: dict[tuple[ChecksumAddress, bytes], CallHandler] = {}
        self.native_balances: dict[ChecksumAddress, int] = {}
        self.gas_price = 10**9
        self.simulations: list[list[dict[str, Any]] | Exception] = []
        self.simulate_payloads: list[Mapping[str, Any]] = []
        self.receipts: dict[bytes, Mapping[str, Any]] = {}
        self.calls: list[tuple[ChecksumAddress, bytes]] = []

    def on_call(self, to: str, selector_or_prototype: bytes | str, handler: CallHandler) -> None:
        selector = (
            function_selector(selector_or_prototype)
            if isinstance(selector_or_prototype, str)
            else selector_or_prototype
        )
        self.handlers[get_checksum_address(to), selector] = handler

    async def chain_id(self) -> int:
        return self._chain_id

    async def call(
        self,
        to: ChecksumAddress,
        data: bytes,
        *,
        from_: ChecksumAddress | None = None,
        value: int = 0,
    ) -> bytes:
        self.calls.append((to, data))
        try:
            handler = self.handlers[get_checksum_address(to), data[:4]]
        except KeyError:
            raise ContractLogicError("execution reverted", data="0x") from None
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            return handler(data)
        return handler

    async def batch_call(self, calls: Sequence[tuple[ChecksumAddress, bytes]]) -> list[bytes]:
        return [await self.call(to, data) for to, data in calls]

    async def get_balance(self, account: ChecksumAddress) -> int:
        return self.native_balances.get(account, 0)

    async def get_gas_price(self) -> int:
        return self.gas_price

    async def simulate(self, payload: Mapping[str, Any]) -> list[dict[str, Any]]:
        self.simulate_payloads.append(payload)
        response = self.simulations.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def wait_for_transaction_receipt(self, tx_hash: HexBytes) -> Mapping[str, Any]:
        return self.receipts.get(bytes(tx_hash), {"status": 1, "transactionHash": tx_hash})


class FakeSigner:
    """
    A `TransactionSigner` backed by a throwaway local key. Sent transactions are recorded and given
    sequential hashes.
    """

    def __init__(self, reject_signatures: Exception | None = None) -> None:
        self.account = Account.create()
        self.reject_signatures = reject_signatures
        self.signed: list[Mapping[str, Any]] = []
        self.sent: list[tuple[ChecksumAddress, bytes, int]] = []

    @property
    def address(self) -> ChecksumAddress:
        return get_checksum_address(self.account.address)

    async def sign_typed_data(self, typed_data: Mapping[str, Any]) -> bytes:
        if self.reject_signatures is not None:
            raise self.reject_signatures
        self.signed.append(typed_data)
        signed = self.account.sign_message(encode_typed_data(full_message=dict(typed_data)))
        return bytes(signed.signature)

    async def sign_message(self, message: bytes) -> bytes:
        return bytes(self.account.sign_message(encode_defunct(primitive=message)).signature)

    async def send_transaction(self, to: ChecksumAddress, data: bytes, value: int = 0) -> HexBytes:
        self.sent.append((to, data, value))
        return HexBytes(len(self.sent).to_bytes(32))


class FakeMultisig:
    def __init__(self) -> None:
        self.proposals: list[Sequence[ProposedTransaction]] = []

    async def propose(
        self, transactions: Sequence[ProposedTransaction]
    ) -> PendingMultisigTransaction:
        self.proposals.append(transactions)
        return PendingMultisigTransaction(safe_tx_hash=f"0x{len(self.proposals):064x}")


class RecordingSubscriber:
    def __init__(self) -> None:
        self.messages: list[AbstractPublisherMessage] = []

    def notify(self, publisher: Publisher, message: AbstractPublisherMessage) -> None:  # noqa: ARG002
        self.messages.append(message)


@pytest.fixture
def chain() -> FakeChainReader:
    return FakeChainReader()


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def multisig() -> FakeMultisig:
    return FakeMultisig()


@pytest.fixture
def subscriber() -> RecordingSubscriber:
    return RecordingSubscriber()
