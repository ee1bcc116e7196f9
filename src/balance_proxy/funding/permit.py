"""
EIP-2612 permit signatures.

Reference: https://eips.ethereum.org/EIPS/eip-2612
"""

import dataclasses
import time
from collections.abc import Sequence
from typing import Any

from eth_typing import ChecksumAddress
from web3.exceptions import Web3Exception

from balance_proxy.chain import ChainReader
from balance_proxy.checksum_cache import get_checksum_address
from balance_proxy.erc20 import decode_string, decode_uint
from balance_proxy.exceptions.base import BalanceProxyValueError
from balance_proxy.exceptions.funding import PermitNotSupported
from balance_proxy.functions import encode_function_calldata
from balance_proxy.funding.signers import TransactionSigner
from balance_proxy.logging import logger
from balance_proxy.types.aliases import ChainId

# Tokens whose permit domain uses version "2"
VERSION_2_TOKEN_NAMES = frozenset({"USD Coin", "USDC"})

PERMIT_TYPES = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "Permit": [
        {"name": "owner", "type": "address"},
        {"name": "spender", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
}

SIGNATURE_LENGTH = 65


@dataclasses.dataclass(slots=True, frozen=True)
class PermitSignature:
    deadline: int
    v: int
    r: bytes
    s: bytes

    def as_abi(self) -> tuple[int, int, bytes, bytes]:
        return (self.deadline, self.v, self.r, self.s)


class PermitCache:
    """
    Permit signatures collected during one attempt, one per token. A cached signature is reused
    on retries so the user is not prompted twice for the same token, but only while the spender
    and the signed value are unchanged. Storing a new signature replaces the token's old one.
    """

    def __init__(self) -> None:
        self._signatures: dict[str, tuple[str, int, PermitSignature]] = {}

    @staticmethod
    def _key(token: str) -> str:
        return token.lower()

    def get(self, token: str, spender: str, value: int) -> PermitSignature | None:
        try:
            cached_spender, cached_value, signature = self._signatures[self._key(token)]
        except KeyError:
            return None
        if cached_spender != spender.lower() or cached_value != value:
            return None
        return signature

    def put(self, token: str, spender: str, value: int, signature: PermitSignature) -> None:
        self._signatures[self._key(token)] = (spender.lower(), value, signature)

    def clear(self) -> None:
        self._signatures.clear()

    def __contains__(self, token: str) -> bool:
        return self._key(token) in self._signatures

    def __len__(self) -> int:
        return len(self._signatures)


async def supports_permit(reader: ChainReader, token: ChecksumAddress) -> bool:
    """
    Check whether the token exposes a non-empty `DOMAIN_SEPARATOR()`, which is taken as evidence
    of EIP-2612 support.
    """

    try:
        result = await reader.call(token, encode_function_calldata("DOMAIN_SEPARATOR()", None))
    except Web3Exception:
        return False
    return len(result) >= 32 and any(result[:32])  # noqa: PLR2004


async def get_permit_nonce(
    reader: ChainReader, token: ChecksumAddress, owner: ChecksumAddress
) -> int:
    return decode_uint(
        await reader.call(token, encode_function_calldata("nonces(address)", [owner]))
    )


def permit_domain_version(token_name: str) -> str:
    return "2" if token_name in VERSION_2_TOKEN_NAMES else "1"


def build_permit_typed_data(
    *,
    token: ChecksumAddress,
    token_name: str,
    chain_id: ChainId,
    owner: ChecksumAddress,
    spender: ChecksumAddress,
    value: int,
    nonce: int,
    deadline: int,
) -> dict[str, Any]:
    return {
        "types": PERMIT_TYPES,
        "primaryType": "Permit",
        "domain": {
            "name": token_name,
            "version": permit_domain_version(token_name),
            "chainId": chain_id,
            "verifyingContract": token,
        },
        "message": {
            "owner": owner,
            "spender": spender,
            "value": value,
            "nonce": nonce,
            "deadline": deadline,
        },
    }


def split_signature(signature: bytes) -> tuple[int, bytes, bytes]:
    """
    Split a 65-byte (r, s, v) signature, normalizing v to 27 or 28.
    """

    if len(signature) != SIGNATURE_LENGTH:
        raise BalanceProxyValueError(
            message=f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(signature)}"
        )

    r, s, v = signature[:32], signature[32:64], signature[64]
    if v < 27:  # noqa: PLR2004
        v += 27
    return v, r, s


def default_deadline(lifetime: int = 3600) -> int:
    return int(time.time()) + lifetime


async def generate_permit_signature(
    reader: ChainReader,
    signer: TransactionSigner,
    token: ChecksumAddress,
    spender: ChecksumAddress,
    value: int,
    deadline: int,
) -> PermitSignature:
    """
    Ask the signer for a permit letting `spender` move `value` of `token` until `deadline`.
    """

    token = get_checksum_address(token)
    owner = signer.address
    try:
        nonce = await get_permit_nonce(reader, token, owner)
        token_name = decode_string(
            await reader.call(token, encode_function_calldata("name()", None))
        )
    except Web3Exception as exc:
        raise PermitNotSupported(token) from exc
    chain_id = await reader.chain_id()

    typed_data = build_permit_typed_data(
        token=token,
        token_name=token_name,
        chain_id=chain_id,
        owner=owner,
        spender=spender,
        value=value,
        nonce=nonce,
        deadline=deadline,
    )
    logger.debug(
        f"Requesting permit for {token_name} ({token}): spender {spender}, value {value}, "
        f"nonce {nonce}, deadline {deadline}"
    )
    v, r, s = split_signature(await signer.sign_typed_data(typed_data))
    return PermitSignature(deadline=deadline, v=v, r=r, s=s)


async def generate_permit_signatures(
    reader: ChainReader,
    signer: TransactionSigner,
    tokens: Sequence[tuple[ChecksumAddress, int]],
    spender: ChecksumAddress,
    deadline: int | None = None,
) -> list[PermitSignature | None]:
    """
    Collect permits for several tokens, one prompt at a time. Tokens without permit support get
    None in their position.
    """

    if deadline is None:
        deadline = default_deadline()

    signatures: list[PermitSignature | None] = []
    for token, amount in tokens:
        if not await supports_permit(reader, token):
            logger.debug(f"Token {token} has no permit support")
            signatures.append(None)
            continue
        try:
            signatures.append(
                await generate_permit_signature(reader, signer, token, spender, amount, deadline)
            )
        except PermitNotSupported as exc:
            logger.debug(exc.message)
            signatures.append(None)
    return signatures
