from .checksum_cache import get_checksum_address
from .config import settings
from .connection import async_connection_manager, get_async_web3, set_async_web3
from .version import __version__

# isort: split

from .cancellation import AbortSignal
from .chain import ChainReader, Web3ChainClient
from .constraints import Approval, BalanceConstraint, CheckSet, Mode, derive_constraints
from .deployments import get_deployment, register_deployment
from .funding import (
    ApprovalOrchestrator,
    LocalAccountSigner,
    MultisigBridge,
    PermitSignature,
    RpcSigner,
    TransactionSigner,
)
from .logging import logger
from .pipeline import (
    PreparedProxyCall,
    ProxyCallContext,
    ProxyCallPipeline,
    SubmittedProxyCall,
    Transaction,
)
from .proxy import build_proxy_call, decode_proxy_revert
from .simulation import RetryPolicy, TwoPhaseSimulator
from .universal_router import CalldataRewriter, extract_swap_info, rewrite_router_calldata

__all__ = (
    "AbortSignal",
    "Approval",
    "ApprovalOrchestrator",
    "BalanceConstraint",
    "CalldataRewriter",
    "ChainReader",
    "CheckSet",
    "LocalAccountSigner",
    "Mode",
    "MultisigBridge",
    "PermitSignature",
    "PreparedProxyCall",
    "ProxyCallContext",
    "ProxyCallPipeline",
    "RetryPolicy",
    "RpcSigner",
    "SubmittedProxyCall",
    "Transaction",
    "TransactionSigner",
    "TwoPhaseSimulator",
    "Web3ChainClient",
    "__version__",
    "async_connection_manager",
    "build_proxy_call",
    "cli",
    "constants",
    "constraints",
    "decode_proxy_revert",
    "derive_constraints",
    "exceptions",
    "extract_swap_info",
    "funding",
    "get_async_web3",
    "get_checksum_address",
    "get_deployment",
    "logger",
    "pipeline",
    "proxy",
    "register_deployment",
    "rewrite_router_calldata",
    "set_async_web3",
    "settings",
    "simulation",
    "types",
    "universal_router",
    "validation",
)
