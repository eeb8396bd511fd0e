"""Transaction types, parameter schemas and the lifecycle orchestrator."""

from txflow.transactions.orchestrator import (
    TransactionOrchestrator,
    TransactionRequest,
    TransactionResult,
    TransactionState,
)
from txflow.transactions.schemas import validate_params
from txflow.transactions.types import (
    TransactionType,
    TxTypeConfig,
    get_gateway_tx_type,
    get_tx_config,
    is_transaction_type,
)

__all__ = [
    "TransactionOrchestrator",
    "TransactionRequest",
    "TransactionResult",
    "TransactionState",
    "TransactionType",
    "TxTypeConfig",
    "get_gateway_tx_type",
    "get_tx_config",
    "is_transaction_type",
    "validate_params",
]
