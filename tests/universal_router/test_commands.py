import pytest
from hypothesis import given, strategies

from balance_proxy.exceptions import BalanceProxyValueError
from balance_proxy.universal_router.commands import (
    CommandType,
    KnownCommand,
    UnknownCommand,
    classify_command,
    command_types,
    decode_commands,
    encode_commands,
    has_any,
)


@pytest.mark.parametrize(
    "commands",
    [
        "0x",
        "0x00",
        "0x000c",
        "0x0a00",
        "0x0b000c",
        "0x10",
        "0x8004",
        "0x3fff7f",
    ],
)
def test_command_string_round_trip(commands: str):
    assert encode_commands(decode_commands(commands)) == commands


def test_decode_accepts_missing_prefix_and_bytes():
    assert decode_commands("000c") == decode_commands("0x000c") == decode_commands(b"\x00\x0c")


def test_encode_normalizes_to_lowercase():
    assert encode_commands(decode_commands("0X0B0C")) == "0x0b0c"


def test_decode_known_commands():
    assert decode_commands("0x000c") == [
        KnownCommand(CommandType.V3_SWAP_EXACT_IN),
        KnownCommand(CommandType.UNWRAP_WETH),
    ]


def test_allow_revert_flag_is_kept():
    (command,) = decode_commands("0x84")
    assert command == KnownCommand(CommandType.SWEEP, allow_revert=True)
    assert command.raw == 0x84
    assert str(command) == "SWEEP (allow revert)"


@pytest.mark.parametrize("raw", [0x07, 0x3F, 0x40, 0x48, 0xFF])
def test_unknown_commands_pass_through(raw: int):
    command = classify_command(raw)
    assert isinstance(command, UnknownCommand)
    assert command.raw == raw
    assert encode_commands([command]) == f"0x{raw:02x}"


def test_classify_rejects_out_of_range():
    with pytest.raises(BalanceProxyValueError):
        classify_command(256)


@pytest.mark.parametrize("commands", ["0x0", "0x000", "0xzz"])
def test_decode_rejects_malformed_hex(commands: str):
    with pytest.raises(BalanceProxyValueError):
        decode_commands(commands)


def test_command_type_queries():
    commands = decode_commands("0x0b0007")
    assert command_types(commands) == {CommandType.WRAP_ETH, CommandType.V3_SWAP_EXACT_IN}
    assert has_any(commands, {CommandType.WRAP_ETH})
    assert not has_any(commands, {CommandType.UNWRAP_WETH, CommandType.SWEEP})


@given(raw=strategies.binary(max_size=64))
def test_command_round_trip_fuzz(raw: bytes) -> None:
    commands = "0x" + raw.hex()
    decoded = decode_commands(commands)
    assert len(decoded) == len(raw)
    assert encode_commands(decoded) == commands
