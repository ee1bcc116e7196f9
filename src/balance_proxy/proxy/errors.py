from collections.abc import Callable
from typing import Any

import eth_abi.abi
from eth_abi.exceptions import DecodingError
from hexbytes import HexBytes

from balance_proxy.checksum_cache import get_checksum_address
from balance_proxy.exceptions.proxy import (
    CallFailed,
    InsufficientBalanceRevert,
    InvalidMetadata,
    MaliciousApproveTarget,
    MetadataBalancesLengthMismatch,
    NegativeApprovalAmount,
    PermitsLengthMismatch,
    ProxyCallError,
    ReentrancyGuardReentrantCall,
    RevertReason,
    UnexpectedBalanceDiff,
    UnknownProxyRevert,
)
from balance_proxy.functions import (
    extract_argument_types_from_function_prototype,
    function_selector,
)
from balance_proxy.logging import logger
from balance_proxy.proxy.abi import ERROR_PROTOTYPES

type _ArgumentConverter = Callable[[tuple[Any, ...]], tuple[Any, ...]]


def _addresses(*positions: int) -> _ArgumentConverter:
    def convert(args: tuple[Any, ...]) -> tuple[Any, ...]:
        return tuple(
            get_checksum_address(arg) if i in positions else arg for i, arg in enumerate(args)
        )

    return convert


def _panic(args: tuple[Any, ...]) -> tuple[Any, ...]:
    (code,) = args
    return (f"Panic(0x{code:02x})",)


def _unchanged(args: tuple[Any, ...]) -> tuple[Any, ...]:
    return args


_DECODERS: dict[bytes, tuple[str, type[ProxyCallError], _ArgumentConverter]] = {
    function_selector(ERROR_PROTOTYPES[name]): (ERROR_PROTOTYPES[name], exception_type, convert)
    for name, exception_type, convert in (
        ("CallFailed", CallFailed, _addresses(0)),
        ("InsufficientBalance", InsufficientBalanceRevert, _addresses(0, 1)),
        ("MaliciousApproveTarget", MaliciousApproveTarget, _addresses(0, 1)),
        ("NegativeApprovalAmount", NegativeApprovalAmount, _unchanged),
        ("ReentrancyGuardReentrantCall", ReentrancyGuardReentrantCall, _unchanged),
        ("UnexpectedBalanceDiff", UnexpectedBalanceDiff, _addresses(0, 1)),
        ("InvalidMetadata", InvalidMetadata, _addresses(0)),
        ("MetadataBalancesLengthMismatch", MetadataBalancesLengthMismatch, _unchanged),
        ("PermitsLengthMismatch", PermitsLengthMismatch, _unchanged),
        ("Error", RevertReason, _unchanged),
        ("Panic", RevertReason, _panic),
    )
}


def decode_proxy_revert(data: bytes | str) -> ProxyCallError:
    """
    Map the revert data of a proxy call to the matching typed exception. Data that is empty, has
    an unknown selector or does not decode gives `UnknownProxyRevert`.
    """

    data = bytes(HexBytes(data))
    try:
        prototype, exception_type, convert = _DECODERS[data[:4]]
    except KeyError:
        return UnknownProxyRevert(data)

    try:
        args = eth_abi.abi.decode(
            types=extract_argument_types_from_function_prototype(prototype), data=data[4:]
        )
    except DecodingError:
        logger.debug(f"Revert data for {prototype} does not decode: 0x{data.hex()}")
        return UnknownProxyRevert(data)

    return exception_type(*convert(tuple(args)))
