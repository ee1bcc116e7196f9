"""
Signing and submission collaborators used by the funding and submission steps.
"""

import dataclasses
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

import ujson
from eth_account.messages import encode_defunct, encode_typed_data
from eth_account.signers.local import LocalAccount
from eth_typing import ChecksumAddress
from hexbytes import HexBytes
from web3 import AsyncBaseProvider, AsyncWeb3
from web3.types import RPCEndpoint, TxParams

from balance_proxy.checksum_cache import get_checksum_address
from balance_proxy.exceptions.funding import SignatureRejected
from balance_proxy.exceptions.simulation import RpcError
from balance_proxy.logging import logger

# EIP-1193 "User Rejected Request"
USER_REJECTED_ERROR_CODE = 4001

# Integers above this lose precision in JavaScript wallets, so they are sent as decimal strings
MAX_SAFE_JSON_INTEGER = 2**53 - 1


class TransactionSigner(Protocol):
    """
    The account acting for the user. Signing prompts are suspension points and are issued one at a
    time.
    """

    @property
    def address(self) -> ChecksumAddress: ...

    async def sign_typed_data(self, typed_data: Mapping[str, Any]) -> bytes:
        """
        Sign an EIP-712 structure, returning the 65-byte (r, s, v) signature.
        """

    async def sign_message(self, message: bytes) -> bytes: ...

    async def send_transaction(self, to: ChecksumAddress, data: bytes, value: int = 0) -> HexBytes:
        """
        Submit a transaction from the signer's address and return its hash.
        """


@dataclasses.dataclass(slots=True, frozen=True)
class ProposedTransaction:
    to: ChecksumAddress
    data: bytes
    value: int = 0


@dataclasses.dataclass(slots=True, frozen=True)
class PendingMultisigTransaction:
    """
    Handle for a transaction awaiting co-signer confirmations.
    """

    safe_tx_hash: str


class MultisigBridge(Protocol):
    async def propose(
        self, transactions: Sequence[ProposedTransaction]
    ) -> PendingMultisigTransaction: ...


class LocalAccountSigner:
    """
    A `TransactionSigner` holding a local private key, submitting EIP-1559 transactions through the
    given web3 instance.
    """

    def __init__(self, account: LocalAccount, w3: AsyncWeb3[AsyncBaseProvider]) -> None:
        self.account = account
        self.w3 = w3

    @property
    def address(self) -> ChecksumAddress:
        return get_checksum_address(self.account.address)

    async def sign_typed_data(self, typed_data: Mapping[str, Any]) -> bytes:
        signed = self.account.sign_message(encode_typed_data(full_message=dict(typed_data)))
        return bytes(signed.signature)

    async def sign_message(self, message: bytes) -> bytes:
        signed = self.account.sign_message(encode_defunct(primitive=message))
        return bytes(signed.signature)

    async def send_transaction(self, to: ChecksumAddress, data: bytes, value: int = 0) -> HexBytes:
        tx = TxParams(
            {
                "from": self.address,
                "to": to,
                "data": HexBytes(data),
                "value": value,
                "nonce": await self.w3.eth.get_transaction_count(self.address, "pending"),
                "chainId": await self.w3.eth.chain_id,
            }
        )
        tx["gas"] = await self.w3.eth.estimate_gas(tx)

        latest_block = await self.w3.eth.get_block("latest")
        priority_fee = await self.w3.eth.max_priority_fee
        tx["maxPriorityFeePerGas"] = priority_fee
        tx["maxFeePerGas"] = 2 * latest_block["baseFeePerGas"] + priority_fee

        signed = self.account.sign_transaction(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.debug(f"Sent transaction {tx_hash.to_0x_hex()} to {to}")
        return tx_hash


def _wallet_json(value: Any) -> Any:
    match value:
        case bool():
            return value
        case int() if abs(value) > MAX_SAFE_JSON_INTEGER:
            return str(value)
        case bytes():
            return HexBytes(value).to_0x_hex()
        case Mapping():
            return {key: _wallet_json(item) for key, item in value.items()}
        case list() | tuple():
            return [_wallet_json(item) for item in value]
        case _:
            return value


class RpcSigner:
    """
    A `TransactionSigner` that forwards signing and submission to the node or wallet behind the
    provider, for an account it controls.
    """

    def __init__(self, w3: AsyncWeb3[AsyncBaseProvider], address: str) -> None:
        self.w3 = w3
        self._address = get_checksum_address(address)

    @property
    def address(self) -> ChecksumAddress:
        return self._address

    async def _request(self, method: str, params: list[Any]) -> Any:
        resp = await self.w3.provider.make_request(method=RPCEndpoint(method), params=params)
        if "error" in resp:
            error = resp["error"]
            if isinstance(error, Mapping) and error.get("code") == USER_REJECTED_ERROR_CODE:
                raise SignatureRejected(request=method)
            raise RpcError(method=method, error=str(error))
        return resp["result"]

    async def sign_typed_data(self, typed_data: Mapping[str, Any]) -> bytes:
        result = await self._request(
            "eth_signTypedData_v4", [self.address, ujson.dumps(_wallet_json(typed_data))]
        )
        return bytes(HexBytes(result))

    async def sign_message(self, message: bytes) -> bytes:
        result = await self._request(
            "personal_sign", [HexBytes(message).to_0x_hex(), self.address]
        )
        return bytes(HexBytes(result))

    async def send_transaction(self, to: ChecksumAddress, data: bytes, value: int = 0) -> HexBytes:
        result = await self._request(
            "eth_sendTransaction",
            [
                {
                    "from": self.address,
                    "to": to,
                    "data": HexBytes(data).to_0x_hex(),
                    "value": hex(value),
                }
            ],
        )
        return HexBytes(result)
