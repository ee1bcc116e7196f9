from balance_proxy.funding.orchestrator import (
    ApprovalEstimate,
    ApprovalOrchestrator,
    ApprovalSource,
    FundingDecision,
    FundingStrategy,
    TokenRequirement,
    determine_approval_amount,
)
from balance_proxy.funding.permit import (
    PermitCache,
    PermitSignature,
    build_permit_typed_data,
    generate_permit_signature,
    generate_permit_signatures,
    permit_domain_version,
    split_signature,
    supports_permit,
)
from balance_proxy.funding.signers import (
    LocalAccountSigner,
    MultisigBridge,
    PendingMultisigTransaction,
    ProposedTransaction,
    RpcSigner,
    TransactionSigner,
)

__all__ = (
    "ApprovalEstimate",
    "ApprovalOrchestrator",
    "ApprovalSource",
    "FundingDecision",
    "FundingStrategy",
    "LocalAccountSigner",
    "MultisigBridge",
    "PendingMultisigTransaction",
    "PermitCache",
    "PermitSignature",
    "ProposedTransaction",
    "RpcSigner",
    "TokenRequirement",
    "TransactionSigner",
    "build_permit_typed_data",
    "determine_approval_amount",
    "generate_permit_signature",
    "generate_permit_signatures",
    "permit_domain_version",
    "split_signature",
    "supports_permit",
)
