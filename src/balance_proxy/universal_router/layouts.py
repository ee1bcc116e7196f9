"""
Declarative byte layouts for command inputs that are rewritten in place.

Each layout lists the head slots of an ABI-encoded struct by name, byte offset and kind. A single
decoder validates an input against its layout, and a single patcher replaces head words while
keeping every other byte, including the dynamic tail, untouched.
"""

import dataclasses
import enum
from collections.abc import Mapping
from typing import Any

from eth_typing import ChecksumAddress

from balance_proxy.checksum_cache import get_checksum_address
from balance_proxy.exceptions.rewrite import CommandLayoutError

WORD_SIZE = 32
ADDRESS_SIZE = 20
V3_FEE_SIZE = 3


class SlotKind(enum.Enum):
    ADDRESS = enum.auto()
    UINT256 = enum.auto()
    BOOL = enum.auto()
    BYTES = enum.auto()  # offset pointer to a length-prefixed byte string
    ADDRESS_ARRAY = enum.auto()  # offset pointer to a length-prefixed address array

    @property
    def is_dynamic(self) -> bool:
        return self in {SlotKind.BYTES, SlotKind.ADDRESS_ARRAY}


@dataclasses.dataclass(slots=True, frozen=True)
class Slot:
    name: str
    offset: int
    kind: SlotKind


@dataclasses.dataclass(slots=True, frozen=True)
class StructLayout:
    name: str
    slots: tuple[Slot, ...]

    @property
    def head_size(self) -> int:
        return max(slot.offset for slot in self.slots) + WORD_SIZE

    def slot(self, name: str) -> Slot:
        for slot in self.slots:
            if slot.name == name:
                return slot
        raise KeyError(name)


def _swap_layout(name: str, amount_a: str, amount_b: str, path_kind: SlotKind) -> StructLayout:
    return StructLayout(
        name=name,
        slots=(
            Slot("recipient", 0, SlotKind.ADDRESS),
            Slot(amount_a, 32, SlotKind.UINT256),
            Slot(amount_b, 64, SlotKind.UINT256),
            Slot("path", 96, path_kind),
            Slot("payer_is_user", 128, SlotKind.BOOL),
        ),
    )


# (address recipient, uint256 amountIn, uint256 amountOutMin, bytes path, bool payerIsUser)
V3_SWAP_EXACT_IN_LAYOUT = _swap_layout(
    "V3_SWAP_EXACT_IN", "amount_in", "amount_out_min", SlotKind.BYTES
)
# (address recipient, uint256 amountOut, uint256 amountInMax, bytes path, bool payerIsUser)
V3_SWAP_EXACT_OUT_LAYOUT = _swap_layout(
    "V3_SWAP_EXACT_OUT", "amount_out", "amount_in_max", SlotKind.BYTES
)
# (address recipient, uint256 amountIn, uint256 amountOutMin, address[] path, bool payerIsUser)
V2_SWAP_EXACT_IN_LAYOUT = _swap_layout(
    "V2_SWAP_EXACT_IN", "amount_in", "amount_out_min", SlotKind.ADDRESS_ARRAY
)
# (address recipient, uint256 amountOut, uint256 amountInMax, address[] path, bool payerIsUser)
V2_SWAP_EXACT_OUT_LAYOUT = _swap_layout(
    "V2_SWAP_EXACT_OUT", "amount_out", "amount_in_max", SlotKind.ADDRESS_ARRAY
)
# V4 SETTLE action: (address currency, uint256 amount, bool payerIsUser)
V4_SETTLE_LAYOUT = StructLayout(
    name="V4_SETTLE",
    slots=(
        Slot("currency", 0, SlotKind.ADDRESS),
        Slot("amount", 32, SlotKind.UINT256),
        Slot("payer_is_user", 64, SlotKind.BOOL),
    ),
)


def _word(data: bytes, offset: int) -> bytes:
    return data[offset : offset + WORD_SIZE]


def _decode_address_word(layout: StructLayout, name: str, word: bytes) -> ChecksumAddress:
    if any(word[: WORD_SIZE - ADDRESS_SIZE]):
        raise CommandLayoutError(layout.name, f"{name} word has non-zero address padding")
    return get_checksum_address(word[-ADDRESS_SIZE:])


def _decode_dynamic(
    layout: StructLayout, slot: Slot, data: bytes
) -> bytes | tuple[ChecksumAddress, ...]:
    pointer = int.from_bytes(_word(data, slot.offset))
    if pointer < layout.head_size:
        raise CommandLayoutError(
            layout.name,
            f"{slot.name} offset {pointer} points inside the {layout.head_size}-byte head",
        )
    if pointer % WORD_SIZE:
        raise CommandLayoutError(layout.name, f"{slot.name} offset {pointer} is not word aligned")
    if pointer + WORD_SIZE > len(data):
        raise CommandLayoutError(layout.name, f"{slot.name} offset {pointer} is out of bounds")

    length = int.from_bytes(_word(data, pointer))
    start = pointer + WORD_SIZE

    match slot.kind:
        case SlotKind.BYTES:
            if start + length > len(data):
                raise CommandLayoutError(
                    layout.name, f"{slot.name} length {length} exceeds the input size"
                )
            return data[start : start + length]
        case SlotKind.ADDRESS_ARRAY:
            if start + length * WORD_SIZE > len(data):
                raise CommandLayoutError(
                    layout.name, f"{slot.name} length {length} exceeds the input size"
                )
            return tuple(
                _decode_address_word(
                    layout, f"{slot.name}[{i}]", _word(data, start + i * WORD_SIZE)
                )
                for i in range(length)
            )
        case _:  # pragma: no cover
            raise ValueError(slot.kind)


def decode_struct(layout: StructLayout, data: bytes) -> dict[str, Any]:
    """
    Decode a command input against a layout, raising `CommandLayoutError` if any assumption about
    its shape does not hold.
    """

    if len(data) < layout.head_size:
        raise CommandLayoutError(
            layout.name,
            f"input is {len(data)} bytes, shorter than the {layout.head_size}-byte head",
        )

    values: dict[str, Any] = {}
    for slot in layout.slots:
        word = _word(data, slot.offset)
        match slot.kind:
            case SlotKind.ADDRESS:
                values[slot.name] = _decode_address_word(layout, slot.name, word)
            case SlotKind.UINT256:
                values[slot.name] = int.from_bytes(word)
            case SlotKind.BOOL:
                flag = int.from_bytes(word)
                if flag not in {0, 1}:
                    raise CommandLayoutError(layout.name, f"{slot.name} word {flag} is not a bool")
                values[slot.name] = bool(flag)
            case SlotKind.BYTES | SlotKind.ADDRESS_ARRAY:
                values[slot.name] = _decode_dynamic(layout, slot, data)
    return values


def _encode_word(layout: StructLayout, slot: Slot, value: Any) -> bytes:
    match slot.kind:
        case SlotKind.ADDRESS:
            return bytes(WORD_SIZE - ADDRESS_SIZE) + bytes.fromhex(
                get_checksum_address(value)[2:]
            )
        case SlotKind.UINT256:
            return int(value).to_bytes(WORD_SIZE)
        case SlotKind.BOOL:
            return (1 if value else 0).to_bytes(WORD_SIZE)
        case _:
            raise CommandLayoutError(layout.name, f"dynamic slot {slot.name} cannot be replaced")


def patch_struct(layout: StructLayout, data: bytes, replacements: Mapping[str, Any]) -> bytes:
    """
    Return a copy of `data` with the named head slots replaced. The input is validated first, and
    all bytes outside the replaced words are reproduced exactly.
    """

    decode_struct(layout, data)

    patched = bytearray(data)
    for name, value in replacements.items():
        try:
            slot = layout.slot(name)
        except KeyError:
            raise CommandLayoutError(layout.name, f"no slot named {name}") from None
        patched[slot.offset : slot.offset + WORD_SIZE] = _encode_word(layout, slot, value)
    return bytes(patched)


def split_v3_path(
    layout: StructLayout, path: bytes
) -> tuple[tuple[ChecksumAddress, ...], tuple[int, ...]]:
    """
    Split a packed V3 path (token, fee, token, fee, ..., token) into its tokens and fees.
    """

    hop_size = ADDRESS_SIZE + V3_FEE_SIZE
    if len(path) < ADDRESS_SIZE or (len(path) - ADDRESS_SIZE) % hop_size:
        raise CommandLayoutError(layout.name, f"path of {len(path)} bytes is not a packed V3 path")

    tokens = tuple(
        get_checksum_address(path[i : i + ADDRESS_SIZE]) for i in range(0, len(path), hop_size)
    )
    fees = tuple(
        int.from_bytes(path[i : i + V3_FEE_SIZE])
        for i in range(ADDRESS_SIZE, len(path) - ADDRESS_SIZE, hop_size)
    )
    return tokens, fees
