"""
Universal Router command bytes.

Each command is one byte: the low six bits select the command type and the high bit marks the
command as allowed to revert without reverting the whole execution. Commands are executed in order,
and the input at position `i` of the inputs array belongs to the command at position `i`.

References:
    - https://docs.uniswap.org/contracts/universal-router/technical-reference
    - https://github.com/Uniswap/universal-router/blob/main/contracts/libraries/Commands.sol
"""

import dataclasses
import enum
from collections.abc import Iterable, Sequence

from hexbytes import HexBytes

from balance_proxy.exceptions import BalanceProxyValueError

COMMAND_TYPE_MASK = 0x3F
FLAG_ALLOW_REVERT = 0x80


class CommandType(enum.IntEnum):
    V3_SWAP_EXACT_IN = 0x00
    V3_SWAP_EXACT_OUT = 0x01
    PERMIT2_TRANSFER_FROM = 0x02
    PERMIT2_PERMIT_BATCH = 0x03
    SWEEP = 0x04
    TRANSFER = 0x05
    PAY_PORTION = 0x06
    V2_SWAP_EXACT_IN = 0x08
    V2_SWAP_EXACT_OUT = 0x09
    PERMIT2_PERMIT = 0x0A
    WRAP_ETH = 0x0B
    UNWRAP_WETH = 0x0C
    PERMIT2_TRANSFER_FROM_BATCH = 0x0D
    BALANCE_CHECK_ERC20 = 0x0E
    V4_SWAP = 0x10
    V3_POSITION_MANAGER_PERMIT = 0x11
    V3_POSITION_MANAGER_CALL = 0x12
    V4_INITIALIZE_POOL = 0x13
    V4_POSITION_MANAGER_CALL = 0x14
    EXECUTE_SUB_PLAN = 0x21


class V4Action(enum.IntEnum):
    """
    Action identifiers inside a V4_SWAP plan.

    Reference: https://github.com/Uniswap/v4-periphery/blob/main/src/libraries/Actions.sol
    """

    SWAP_EXACT_IN_SINGLE = 0x06
    SWAP_EXACT_IN = 0x07
    SWAP_EXACT_OUT_SINGLE = 0x08
    SWAP_EXACT_OUT = 0x09
    DONATE = 0x0A
    SETTLE = 0x0B
    SETTLE_ALL = 0x0C
    SETTLE_PAIR = 0x0D
    TAKE = 0x0E
    TAKE_ALL = 0x0F
    TAKE_PORTION = 0x10
    TAKE_PAIR = 0x11
    CLOSE_CURRENCY = 0x12
    CLEAR_OR_TAKE = 0x13
    SWEEP = 0x14
    WRAP = 0x15
    UNWRAP = 0x16


# Commands whose input carries a fixed-head swap struct that can be rewritten in place
V3_SWAP_COMMANDS = frozenset({CommandType.V3_SWAP_EXACT_IN, CommandType.V3_SWAP_EXACT_OUT})
V2_SWAP_COMMANDS = frozenset({CommandType.V2_SWAP_EXACT_IN, CommandType.V2_SWAP_EXACT_OUT})

# Signature-based allowance commands made redundant by pre-funding the router
PERMIT_COMMANDS = frozenset({CommandType.PERMIT2_PERMIT, CommandType.PERMIT2_PERMIT_BATCH})

# Commands that act on tokens held by the router after a swap
KEEP_IN_ROUTER_COMMANDS = frozenset(
    {CommandType.UNWRAP_WETH, CommandType.PAY_PORTION, CommandType.SWEEP}
)


@dataclasses.dataclass(slots=True, frozen=True)
class KnownCommand:
    type: CommandType
    allow_revert: bool = False

    @property
    def raw(self) -> int:
        return self.type | (FLAG_ALLOW_REVERT if self.allow_revert else 0)

    def __str__(self) -> str:
        return self.type.name + (" (allow revert)" if self.allow_revert else "")


@dataclasses.dataclass(slots=True, frozen=True)
class UnknownCommand:
    """
    A command byte without a known type. It is carried through unchanged and never rewritten.
    """

    raw: int

    @property
    def allow_revert(self) -> bool:
        return bool(self.raw & FLAG_ALLOW_REVERT)

    def __str__(self) -> str:
        return f"UNKNOWN (0x{self.raw:02x})"


type Command = KnownCommand | UnknownCommand


def classify_command(raw: int) -> Command:
    if not 0 <= raw <= 0xFF:  # noqa: PLR2004
        raise BalanceProxyValueError(message=f"Command byte {raw} is out of range")

    try:
        command_type = CommandType(raw & COMMAND_TYPE_MASK)
    except ValueError:
        return UnknownCommand(raw=raw)

    # Bit 6 is unassigned, so a command setting it is carried through as unknown
    if raw & 0x40:  # noqa: PLR2004
        return UnknownCommand(raw=raw)

    return KnownCommand(type=command_type, allow_revert=bool(raw & FLAG_ALLOW_REVERT))


def decode_commands(commands: str | bytes) -> list[Command]:
    """
    Split a packed command string into individual commands. Hex strings may be given with or
    without the '0x' prefix.
    """

    if isinstance(commands, str):
        hex_digits = commands.removeprefix("0x").removeprefix("0X")
        if len(hex_digits) % 2:
            raise BalanceProxyValueError(
                message=f"Command string has an odd number of hex digits ({len(hex_digits)})"
            )
        try:
            commands = bytes.fromhex(hex_digits)
        except ValueError:
            raise BalanceProxyValueError(message="Command string is not valid hex") from None

    return [classify_command(byte) for byte in commands]


def encode_commands(commands: Iterable[Command]) -> str:
    """
    Pack commands into a lowercase, '0x'-prefixed hex string.
    """

    return HexBytes(bytes(command.raw for command in commands)).to_0x_hex()


def command_types(commands: Sequence[Command]) -> set[CommandType]:
    return {command.type for command in commands if isinstance(command, KnownCommand)}


def has_any(commands: Sequence[Command], wanted: Iterable[CommandType]) -> bool:
    return not command_types(commands).isdisjoint(wanted)
