"""Error taxonomy for the transaction lifecycle.

Every failure the orchestrator can surface maps to one of these classes.
``user_message`` is the text meant for display; ``str(error)`` keeps the
technical detail for logs.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from txflow.gateway.contracts import TxStatus


class TxFlowError(Exception):
    """Base class for all txflow errors."""

    default_user_message = "Transaction failed. Please try again."

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.user_message = user_message or self.default_user_message


class ValidationError(TxFlowError):
    """Raised when a request fails local validation before any network call."""

    default_user_message = "Some transaction details are invalid."

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = errors or []


class WalletNotConnectedError(ValidationError):
    """Raised when no wallet is connected."""

    default_user_message = "Connect your wallet to continue."


class BuildError(TxFlowError):
    """Raised when the gateway cannot construct an unsigned transaction."""

    default_user_message = "Could not build the transaction."


class SigningError(TxFlowError):
    """Raised when the wallet does not return a signed transaction."""

    default_user_message = "The wallet could not sign the transaction."


class UserRejectedError(SigningError):
    """Raised when the user declines to sign."""

    default_user_message = "You declined to sign the transaction."


class WalletError(SigningError):
    """Raised on a wallet or wallet-connection fault."""

    default_user_message = "Your wallet reported an error. Check the connection and retry."


class SubmissionError(TxFlowError):
    """Raised when broadcasting fails before the transaction reaches the chain.

    Safe to retry with a fresh ``execute()``.
    """

    default_user_message = "The transaction could not be submitted. It is safe to retry."


class TransactionCancelledError(TxFlowError):
    """Raised when ``execute()`` is cancelled before a hash was returned.

    If cancellation interrupted the wallet's submit call, the broadcast
    may still have gone through.
    """

    default_user_message = "The transaction was interrupted. Check your wallet before retrying."


class SubmittedTransactionError(TxFlowError):
    """Base for errors raised after the transaction reached the chain.

    Callers must not report the action as failed. ``tx_hash`` identifies
    the broadcast transaction.
    """

    def __init__(self, tx_hash: str, message: str):
        super().__init__(message)
        self.tx_hash = tx_hash


class SubmittedButUntrackedError(SubmittedTransactionError):
    """Raised when a broadcast transaction could not be registered.

    The transaction IS on-chain. Callers must not report the action as
    failed; they can only stop tracking it.
    """

    default_user_message = (
        "Your transaction was submitted to the blockchain but could not be "
        "registered for tracking. Do not resubmit it."
    )


class TrackingStoppedError(SubmittedTransactionError):
    """Raised when confirmation tracking ends before a terminal gateway state.

    The transaction is on-chain and registered. Only the local watch ended,
    by timeout or cancellation. ``status`` is the last status seen, which
    for a timeout is the locally synthesized ``expired`` one.
    """

    default_user_message = (
        "Your transaction was submitted and is still being processed. "
        "Check its status later. Do not resubmit it."
    )

    def __init__(self, tx_hash: str, message: str, status: Optional["TxStatus"] = None):
        super().__init__(tx_hash, message)
        self.status = status


class ConfirmationError(TxFlowError):
    """Raised when the gateway reports a transaction as failed or expired."""

    default_user_message = "The transaction was not confirmed. Build a new one to retry."

    def __init__(self, status: "TxStatus", message: Optional[str] = None):
        super().__init__(
            message or f"Transaction {status.tx_hash} ended in state {status.state.value}"
        )
        self.status = status


class GatewayError(TxFlowError):
    """Raised when the gateway returns a non-success response."""

    default_user_message = "The transaction service returned an error."

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"Gateway error: {status_code} - {detail}")
        self.status_code = status_code
        self.detail = detail


class GatewayUnavailableError(GatewayError):
    """Raised when the gateway cannot be reached."""

    default_user_message = "The transaction service is unreachable."

    def __init__(self, detail: str):
        super().__init__(0, detail)
