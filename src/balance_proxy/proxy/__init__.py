from balance_proxy.proxy.abi import ENTRY_POINTS, EntryPoint, ProxyContract, get_entry_point
from balance_proxy.proxy.encoder import (
    ProxyCall,
    build_proxy_call,
    build_simulation_call,
    contract_address,
    encode_proxy_call,
    select_proxy_contract,
)
from balance_proxy.proxy.errors import decode_proxy_revert

__all__ = (
    "ENTRY_POINTS",
    "EntryPoint",
    "ProxyCall",
    "ProxyContract",
    "build_proxy_call",
    "build_simulation_call",
    "contract_address",
    "decode_proxy_revert",
    "encode_proxy_call",
    "get_entry_point",
    "select_proxy_contract",
)
