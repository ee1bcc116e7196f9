from balance_proxy.universal_router.calldata import (
    CalldataRewriter,
    RewriteResult,
    RouterCall,
    SwapInfo,
    decode_router_call,
    encode_router_call,
    extract_swap_info,
    is_native_input,
    remove_permit_command,
    rewrite_router_calldata,
    should_keep_in_router,
)
from balance_proxy.universal_router.commands import (
    Command,
    CommandType,
    KnownCommand,
    UnknownCommand,
    V4Action,
    decode_commands,
    encode_commands,
)
from balance_proxy.universal_router.rewriter import (
    ADDRESS_THIS,
    MSG_SENDER,
    SettleAction,
    SwapParameters,
)

__all__ = (
    "ADDRESS_THIS",
    "MSG_SENDER",
    "CalldataRewriter",
    "Command",
    "CommandType",
    "KnownCommand",
    "RewriteResult",
    "RouterCall",
    "SettleAction",
    "SwapInfo",
    "SwapParameters",
    "UnknownCommand",
    "V4Action",
    "decode_commands",
    "decode_router_call",
    "encode_commands",
    "encode_router_call",
    "extract_swap_info",
    "is_native_input",
    "remove_permit_command",
    "rewrite_router_calldata",
    "should_keep_in_router",
)
