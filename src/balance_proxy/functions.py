from collections.abc import Sequence
from decimal import Decimal
from fractions import Fraction
from typing import Any

import eth_abi.abi
from eth_utils.crypto import keccak

from balance_proxy.exceptions import BalanceProxyTypeError, BalanceProxyValueError


def function_selector(function_prototype: str) -> bytes:
    """
    Get the 4-byte selector for the given function prototype, e.g. 'transfer(address,uint256)'.
    """

    return keccak(text=function_prototype)[:4]


def encode_function_calldata(
    function_prototype: str, function_arguments: Sequence[Any] | None
) -> bytes:
    """
    Encode the calldata to execute a call to the given function prototype, with ordered arguments.
    The resulting bytes array will include the 4-byte function selector, followed by the
    ABI-encoded arguments.
    """

    if function_arguments is None:
        function_arguments = ()

    return function_selector(function_prototype) + eth_abi.abi.encode(
        types=extract_argument_types_from_function_prototype(function_prototype),
        args=function_arguments,
    )


def decode_function_calldata(function_prototype: str, calldata: bytes) -> tuple[Any, ...]:
    """
    Decode the arguments from calldata built for the given function prototype. The selector must
    match the prototype.
    """

    if calldata[:4] != function_selector(function_prototype):
        raise BalanceProxyValueError(
            message=f"Calldata selector 0x{calldata[:4].hex()} does not match {function_prototype}"
        )

    return eth_abi.abi.decode(
        types=extract_argument_types_from_function_prototype(function_prototype),
        data=calldata[4:],
    )


def extract_argument_types_from_function_prototype(function_prototype: str) -> list[str]:
    """
    Extract the argument types from the function prototype.

    e.g. the argument types for the prototype 'function(address,uint256)' are ['address','uint256'],
    and for 'function((address,int256)[],bytes)' are ['(address,int256)[]','bytes']
    """

    function_args = function_prototype[
        function_prototype.find("(") + 1 : function_prototype.rfind(")")
    ]
    if not function_args:
        return []

    # Split on commas outside of tuple components
    types: list[str] = []
    depth = 0
    start = 0
    for i, char in enumerate(function_args):
        match char:
            case "(":
                depth += 1
            case ")":
                depth -= 1
            case "," if depth == 0:
                types.append(function_args[start:i])
                start = i + 1
    types.append(function_args[start:])
    return types


def to_fraction(value: float | Decimal | Fraction) -> Fraction:
    """
    Convert a percentage or multiplier to an exact fraction. Floats are converted through their
    shortest decimal representation, so 0.1 becomes 1/10 rather than the nearest binary fraction.
    """

    match value:
        case Fraction():
            return value
        case float():
            return Fraction(Decimal(str(value)))
        case int() | Decimal():
            return Fraction(value)
        case _:
            raise BalanceProxyTypeError(
                message=f"Cannot convert {type(value).__name__} to an exact fraction"
            )


def ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def scale_ceil(amount: int, factor: Fraction) -> int:
    """
    Multiply an integer amount by a fraction, rounding toward positive infinity.
    """

    return ceil_div(amount * factor.numerator, factor.denominator)


def scale_floor(amount: int, factor: Fraction) -> int:
    """
    Multiply an integer amount by a fraction, rounding toward negative infinity.
    """

    return (amount * factor.numerator) // factor.denominator
