import dataclasses
from collections.abc import Collection, Sequence
from weakref import WeakSet

import eth_abi.abi
from eth_abi.exceptions import DecodingError
from eth_typing import ChecksumAddress
from hexbytes import HexBytes

from balance_proxy.checksum_cache import get_checksum_address
from balance_proxy.config import settings
from balance_proxy.exceptions.rewrite import CommandLayoutError, UnsupportedRouterCall
from balance_proxy.functions import decode_function_calldata, function_selector
from balance_proxy.logging import logger
from balance_proxy.types.concrete import PublisherMixin, RewriteWarning, Subscriber
from balance_proxy.universal_router.commands import (
    KEEP_IN_ROUTER_COMMANDS,
    PERMIT_COMMANDS,
    V2_SWAP_COMMANDS,
    V3_SWAP_COMMANDS,
    Command,
    CommandType,
    KnownCommand,
    decode_commands,
    encode_commands,
    has_any,
)
from balance_proxy.universal_router.rewriter import (
    ADDRESS_THIS,
    decode_swap,
    find_settle_actions,
    rewrite_swap_input,
    rewrite_v4_plan,
)

EXECUTE_WITH_DEADLINE_PROTOTYPE = "execute(bytes,bytes[],uint256)"
EXECUTE_PROTOTYPE = "execute(bytes,bytes[])"
EXECUTE_WITH_DEADLINE_SELECTOR = function_selector(EXECUTE_WITH_DEADLINE_PROTOTYPE)
EXECUTE_SELECTOR = function_selector(EXECUTE_PROTOTYPE)


@dataclasses.dataclass(slots=True, frozen=True)
class RouterCall:
    commands: tuple[Command, ...]
    inputs: tuple[bytes, ...]
    deadline: int | None  # None for the entry point without a deadline


@dataclasses.dataclass(slots=True, frozen=True)
class SwapInfo:
    input_token: ChecksumAddress
    input_amount: int  # zero for a V4 settle of the open delta
    output_token: ChecksumAddress | None = None


@dataclasses.dataclass(slots=True, frozen=True)
class RewriteResult:
    calldata: bytes
    is_router_call: bool
    commands: tuple[Command, ...] = ()
    removed_permits: int = 0
    keep_in_router: bool = False
    warnings: tuple[str, ...] = ()

    @property
    def has_wrap_eth(self) -> bool:
        return has_any(self.commands, {CommandType.WRAP_ETH})


def decode_router_call(calldata: bytes | str) -> RouterCall:
    """
    Decode a call to either Universal Router `execute` entry point.
    """

    calldata = bytes(HexBytes(calldata))
    selector = calldata[:4]

    prototype: str
    if selector == EXECUTE_WITH_DEADLINE_SELECTOR:
        prototype = EXECUTE_WITH_DEADLINE_PROTOTYPE
    elif selector == EXECUTE_SELECTOR:
        prototype = EXECUTE_PROTOTYPE
    else:
        raise UnsupportedRouterCall(selector="0x" + selector.hex())

    try:
        decoded = decode_function_calldata(prototype, calldata)
    except DecodingError as exc:
        raise CommandLayoutError("execute", str(exc)) from exc

    commands, inputs = decoded[0], decoded[1]
    if len(commands) != len(inputs):
        raise CommandLayoutError(
            "execute", f"{len(commands)} commands but {len(inputs)} inputs"
        )

    return RouterCall(
        commands=tuple(decode_commands(commands)),
        inputs=tuple(inputs),
        deadline=decoded[2] if len(decoded) == 3 else None,  # noqa: PLR2004
    )


def encode_router_call(call: RouterCall) -> bytes:
    command_bytes = bytes(HexBytes(encode_commands(call.commands)))
    if call.deadline is None:
        return EXECUTE_SELECTOR + eth_abi.abi.encode(
            ("bytes", "bytes[]"), (command_bytes, list(call.inputs))
        )
    return EXECUTE_WITH_DEADLINE_SELECTOR + eth_abi.abi.encode(
        ("bytes", "bytes[]", "uint256"), (command_bytes, list(call.inputs), call.deadline)
    )


def remove_permit_command(call: RouterCall) -> tuple[RouterCall, int]:
    """
    Drop the first Permit2 signature command together with its input at the same index, so the
    command list shortens by one when a permit is present and is unchanged otherwise. Transfers
    that rely on the permit are unaffected because the router is pre-funded.
    """

    for index, command in enumerate(call.commands):
        if isinstance(command, KnownCommand) and command.type in PERMIT_COMMANDS:
            break
    else:
        return call, 0

    return (
        RouterCall(
            commands=call.commands[:index] + call.commands[index + 1 :],
            inputs=call.inputs[:index] + call.inputs[index + 1 :],
            deadline=call.deadline,
        ),
        1,
    )


def should_keep_in_router(commands: Sequence[Command]) -> bool:
    """
    Swap outputs must stay at the router when a later command unwraps, sweeps or pays a portion of
    them.
    """

    return has_any(commands, KEEP_IN_ROUTER_COMMANDS)


def is_native_input(commands: Sequence[Command], value: int = 0) -> bool:
    """
    Check whether the swap is paid in the native currency. A WRAP_ETH command marks a native input
    unless the router also unwraps, sweeps or pays out wrapped tokens and no value is attached, in
    which case the wrap belongs to the output side.
    """

    if not has_any(commands, {CommandType.WRAP_ETH}):
        return False
    return value > 0 or not should_keep_in_router(commands)


class CalldataRewriter(PublisherMixin):
    """
    Rewrites Universal Router calldata so that the swap can be executed with funds pre-positioned
    at the router by the balance proxy.

    Swap commands are rewritten to pay from the router balance (`payerIsUser = false`) and to send
    their output either to the user or, when later commands still operate on it, to the router
    itself. The first Permit2 signature command is removed.

    Commands whose input does not match the expected layout are kept unmodified and reported via
    `RewriteWarning` messages, unless `fail_closed` is set, in which case `CommandLayoutError` is
    raised.
    """

    def __init__(self, *, fail_closed: bool | None = None) -> None:
        self.fail_closed = (
            settings.pipeline.fail_closed_on_layout_mismatch if fail_closed is None else fail_closed
        )
        self._subscribers: WeakSet[Subscriber] = WeakSet()

    def _warn(self, text: str, index: int | None, warnings: list[str]) -> None:
        logger.warning(text)
        warnings.append(text)
        self._notify_subscribers(RewriteWarning(text, command_index=index))

    def rewrite(self, calldata: bytes | str, user: str) -> RewriteResult:
        calldata = bytes(HexBytes(calldata))
        user = get_checksum_address(user)

        try:
            call = decode_router_call(calldata)
        except UnsupportedRouterCall as exc:
            logger.info(f"{exc.message}, calldata passed through unmodified")
            return RewriteResult(calldata=calldata, is_router_call=False)

        logger.debug(f"Router commands: {', '.join(str(command) for command in call.commands)}")

        call, removed = remove_permit_command(call)
        if removed:
            logger.info("Removed the Permit2 signature command")

        keep_in_router = should_keep_in_router(call.commands)
        recipient = ADDRESS_THIS if keep_in_router else user
        logger.debug(f"Keep swap output in router: {keep_in_router}")

        warnings: list[str] = []
        inputs = list(call.inputs)
        for index, command in enumerate(call.commands):
            if not isinstance(command, KnownCommand):
                continue

            try:
                match command.type:
                    case t if t in V3_SWAP_COMMANDS or t in V2_SWAP_COMMANDS:
                        inputs[index] = rewrite_swap_input(command.type, inputs[index], recipient)
                    case CommandType.V4_SWAP:
                        result = rewrite_v4_plan(inputs[index])
                        if result.modified:
                            inputs[index] = result.data
                        else:
                            self._warn(
                                f"V4_SWAP at index {index} has no SETTLE action to rewrite; the "
                                "swap may try to pull tokens from the user and fail",
                                index,
                                warnings,
                            )
            except CommandLayoutError as exc:
                if self.fail_closed:
                    raise
                self._warn(
                    f"{command} at index {index} kept unmodified: {exc.message}",
                    index,
                    warnings,
                )

        rewritten = RouterCall(commands=call.commands, inputs=tuple(inputs), deadline=call.deadline)
        return RewriteResult(
            calldata=encode_router_call(rewritten),
            is_router_call=True,
            commands=call.commands,
            removed_permits=removed,
            keep_in_router=keep_in_router,
            warnings=tuple(warnings),
        )


def rewrite_router_calldata(
    calldata: bytes | str, user: str, *, fail_closed: bool | None = None
) -> RewriteResult:
    return CalldataRewriter(fail_closed=fail_closed).rewrite(calldata, user)


def extract_swap_info(calldata: bytes | str) -> SwapInfo | None:
    """
    Find the input token and amount of a Universal Router swap, trying the first V4 SETTLE action,
    then the first V3 swap, then the first V2 swap. Returns None when nothing can be decoded.
    """

    try:
        call = decode_router_call(calldata)
    except (UnsupportedRouterCall, CommandLayoutError):
        return None

    def first_input(wanted: Collection[CommandType]) -> tuple[CommandType, bytes] | None:
        for command, data in zip(call.commands, call.inputs, strict=True):
            if isinstance(command, KnownCommand) and command.type in wanted:
                return command.type, data
        return None

    if found := first_input({CommandType.V4_SWAP}):
        try:
            settles = find_settle_actions(found[1])
        except CommandLayoutError:
            settles = []
        if settles:
            return SwapInfo(input_token=settles[0].currency, input_amount=settles[0].amount)

    for swap_commands in (V3_SWAP_COMMANDS, V2_SWAP_COMMANDS):
        if found := first_input(swap_commands):
            try:
                swap = decode_swap(*found)
            except CommandLayoutError as exc:
                logger.debug(f"Could not extract swap info from {found[0].name}: {exc}")
                continue
            return SwapInfo(
                input_token=swap.token_in,
                input_amount=swap.max_amount_in,
                output_token=swap.token_out,
            )

    return None
