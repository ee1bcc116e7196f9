import dataclasses

import eth_abi.abi
from eth_abi.exceptions import DecodingError
from eth_typing import ChecksumAddress

from balance_proxy.checksum_cache import get_checksum_address
from balance_proxy.exceptions.rewrite import CommandLayoutError
from balance_proxy.logging import logger
from balance_proxy.universal_router.commands import CommandType, V4Action
from balance_proxy.universal_router.layouts import (
    V2_SWAP_EXACT_IN_LAYOUT,
    V2_SWAP_EXACT_OUT_LAYOUT,
    V3_SWAP_EXACT_IN_LAYOUT,
    V3_SWAP_EXACT_OUT_LAYOUT,
    V4_SETTLE_LAYOUT,
    SlotKind,
    StructLayout,
    decode_struct,
    patch_struct,
    split_v3_path,
)

# Recipient sentinels interpreted by the router
MSG_SENDER: ChecksumAddress = get_checksum_address("0x0000000000000000000000000000000000000001")
ADDRESS_THIS: ChecksumAddress = get_checksum_address("0x0000000000000000000000000000000000000002")

SWAP_LAYOUTS: dict[CommandType, StructLayout] = {
    CommandType.V3_SWAP_EXACT_IN: V3_SWAP_EXACT_IN_LAYOUT,
    CommandType.V3_SWAP_EXACT_OUT: V3_SWAP_EXACT_OUT_LAYOUT,
    CommandType.V2_SWAP_EXACT_IN: V2_SWAP_EXACT_IN_LAYOUT,
    CommandType.V2_SWAP_EXACT_OUT: V2_SWAP_EXACT_OUT_LAYOUT,
}

V4_PLAN_TYPES = ("bytes", "bytes[]")


@dataclasses.dataclass(slots=True, frozen=True)
class SwapParameters:
    command: CommandType
    recipient: ChecksumAddress
    amount_specified: int  # exact amount: input for exact-in swaps, output for exact-out swaps
    amount_limit: int  # slippage bound: minimum output or maximum input
    path: tuple[ChecksumAddress, ...]
    fees: tuple[int, ...]  # V3 pool fees in pips, empty for V2 paths
    payer_is_user: bool

    @property
    def is_exact_in(self) -> bool:
        return self.command in {CommandType.V3_SWAP_EXACT_IN, CommandType.V2_SWAP_EXACT_IN}

    @property
    def token_in(self) -> ChecksumAddress:
        # V3 exact-output paths are encoded from the output token back to the input token
        if self.command is CommandType.V3_SWAP_EXACT_OUT:
            return self.path[-1]
        return self.path[0]

    @property
    def token_out(self) -> ChecksumAddress:
        if self.command is CommandType.V3_SWAP_EXACT_OUT:
            return self.path[0]
        return self.path[-1]

    @property
    def max_amount_in(self) -> int:
        return self.amount_specified if self.is_exact_in else self.amount_limit


@dataclasses.dataclass(slots=True, frozen=True)
class SettleAction:
    currency: ChecksumAddress
    amount: int  # zero settles the open delta
    payer_is_user: bool


@dataclasses.dataclass(slots=True, frozen=True)
class V4Plan:
    actions: bytes
    params: tuple[bytes, ...]


@dataclasses.dataclass(slots=True, frozen=True)
class V4RewriteResult:
    data: bytes
    settles_rewritten: int
    skipped: tuple[str, ...] = ()

    @property
    def modified(self) -> bool:
        return self.settles_rewritten > 0


def decode_swap(command: CommandType, data: bytes) -> SwapParameters:
    layout = SWAP_LAYOUTS[command]
    values = decode_struct(layout, data)

    match layout.slot("path").kind:
        case SlotKind.BYTES:
            path, fees = split_v3_path(layout, values["path"])
        case _:
            path, fees = values["path"], ()
            if not path:
                raise CommandLayoutError(layout.name, "path is empty")

    amount_specified, amount_limit = (
        (values["amount_in"], values["amount_out_min"])
        if "amount_in" in values
        else (values["amount_out"], values["amount_in_max"])
    )

    return SwapParameters(
        command=command,
        recipient=values["recipient"],
        amount_specified=amount_specified,
        amount_limit=amount_limit,
        path=path,
        fees=fees,
        payer_is_user=values["payer_is_user"],
    )


def rewrite_swap_input(command: CommandType, data: bytes, recipient: ChecksumAddress) -> bytes:
    """
    Rewrite a V2 or V3 swap input so the router pays from its own balance and sends the output to
    `recipient`. The amounts and path are kept exactly.
    """

    original = decode_swap(command, data)
    rewritten = patch_struct(
        SWAP_LAYOUTS[command],
        data,
        {"recipient": recipient, "payer_is_user": False},
    )
    logger.debug(
        f"{command.name}: recipient {original.recipient} -> {recipient}, "
        f"payerIsUser {original.payer_is_user} -> False"
    )
    return rewritten


def decode_v4_plan(data: bytes) -> V4Plan:
    try:
        actions, params = eth_abi.abi.decode(V4_PLAN_TYPES, data)
    except DecodingError as exc:
        raise CommandLayoutError("V4_SWAP", f"plan is not (bytes, bytes[]): {exc}") from exc

    if len(actions) != len(params):
        raise CommandLayoutError(
            "V4_SWAP", f"{len(actions)} actions but {len(params)} parameter blobs"
        )
    return V4Plan(actions=actions, params=tuple(params))


def encode_v4_plan(plan: V4Plan) -> bytes:
    return eth_abi.abi.encode(V4_PLAN_TYPES, (plan.actions, list(plan.params)))


def decode_settle(data: bytes) -> SettleAction:
    values = decode_struct(V4_SETTLE_LAYOUT, data)
    return SettleAction(
        currency=values["currency"],
        amount=values["amount"],
        payer_is_user=values["payer_is_user"],
    )


def find_settle_actions(data: bytes) -> list[SettleAction]:
    """
    Decode every well-formed SETTLE action from a V4_SWAP input, in plan order.
    """

    plan = decode_v4_plan(data)
    settles = []
    for action, param in zip(plan.actions, plan.params, strict=True):
        if action != V4Action.SETTLE:
            continue
        try:
            settles.append(decode_settle(param))
        except CommandLayoutError as exc:
            logger.debug(f"Skipping malformed SETTLE action: {exc}")
    return settles


def rewrite_v4_plan(data: bytes) -> V4RewriteResult:
    """
    Force the payer flag of every SETTLE action in a V4_SWAP plan to false. Swap steps and take
    steps are passed through unchanged. When no SETTLE action can be rewritten, the original input
    is returned and the caller is expected to warn.
    """

    plan = decode_v4_plan(data)

    new_params: list[bytes] = []
    rewritten = 0
    skipped: list[str] = []
    for index, (action, param) in enumerate(zip(plan.actions, plan.params, strict=True)):
        if action != V4Action.SETTLE:
            new_params.append(param)
            continue
        try:
            new_params.append(patch_struct(V4_SETTLE_LAYOUT, param, {"payer_is_user": False}))
            rewritten += 1
        except CommandLayoutError as exc:
            logger.warning(f"SETTLE action {index} kept unmodified: {exc}")
            skipped.append(str(exc))
            new_params.append(param)

    if not rewritten:
        return V4RewriteResult(data=data, settles_rewritten=0, skipped=tuple(skipped))

    return V4RewriteResult(
        data=encode_v4_plan(V4Plan(actions=plan.actions, params=tuple(new_params))),
        settles_rewritten=rewritten,
        skipped=tuple(skipped),
    )
