"""Transaction lifecycle orchestrator.

Drives one transaction through build → sign → submit → register:

1. FETCHING: validate locally, collect wallet addresses, ask the gateway to
   build the unsigned transaction
2. SIGNING: the connected wallet signs (the user may decline)
3. SUBMITTING: the wallet broadcasts; the hash is registered with the
   gateway so it can track confirmation and run DB updates
4. SUCCESS / ERROR

Once a transaction is broadcast it cannot be taken back. A registration
failure after broadcast is reported as ``SubmittedButUntrackedError`` with
the hash, never as an ordinary failure. Likewise a confirmation watch that
times out or is cancelled ends in ``TrackingStoppedError``.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional

from txflow.errors import (
    BuildError,
    ConfirmationError,
    GatewayError,
    SigningError,
    SubmissionError,
    SubmittedButUntrackedError,
    SubmittedTransactionError,
    TrackingStoppedError,
    TransactionCancelledError,
    TxFlowError,
    ValidationError,
    WalletError,
    WalletNotConnectedError,
)
from txflow.gateway.client import GatewayClient
from txflow.gateway.contracts import RegisterResponse, UnsignedTransaction
from txflow.hashing import check_echoed_hashes
from txflow.session import Session
from txflow.transactions.schemas import validate_params
from txflow.transactions.types import (
    InitiatorFormat,
    TransactionType,
    TxTypeConfig,
    get_tx_config,
    is_transaction_type,
)
from txflow.utils.callbacks import Callback, invoke_callback
from txflow.wallet.base import WalletAdapter

if TYPE_CHECKING:
    from txflow.watcher.broker import ConfirmationWatcher, Watch

logger = logging.getLogger(__name__)


class TransactionState(str, Enum):
    """Client-side state of one execution attempt."""

    IDLE = "idle"
    FETCHING = "fetching"  # Validating and building the unsigned transaction
    SIGNING = "signing"  # Waiting for the wallet
    SUBMITTING = "submitting"  # Broadcasting and registering
    CONFIRMING = "confirming"  # Waiting for the gateway (track_confirmation only)
    SUCCESS = "success"
    ERROR = "error"


IN_FLIGHT_STATES = frozenset({
    TransactionState.FETCHING,
    TransactionState.SIGNING,
    TransactionState.SUBMITTING,
    TransactionState.CONFIRMING,
})

VALID_TRANSITIONS: dict[TransactionState, list[TransactionState]] = {
    TransactionState.IDLE: [TransactionState.FETCHING],
    TransactionState.FETCHING: [TransactionState.SIGNING, TransactionState.ERROR],
    TransactionState.SIGNING: [TransactionState.SUBMITTING, TransactionState.ERROR],
    TransactionState.SUBMITTING: [
        TransactionState.CONFIRMING,
        TransactionState.SUCCESS,
        TransactionState.ERROR,
    ],
    TransactionState.CONFIRMING: [TransactionState.SUCCESS, TransactionState.ERROR],
    TransactionState.SUCCESS: [TransactionState.IDLE],
    TransactionState.ERROR: [TransactionState.IDLE],
}


class InvalidTransitionError(Exception):
    """Raised when the orchestrator attempts an undeclared state change."""

    pass


@dataclass(frozen=True)
class TransactionRequest:
    """A single user action to execute.

    Params and metadata are copied into read-only mappings, so the request
    cannot change after it is handed to ``execute()``.
    """

    tx_type: TransactionType
    params: Mapping[str, Any] = field(default_factory=dict)
    metadata: Optional[Mapping[str, str]] = None
    on_success: Optional[Callback] = None
    on_error: Optional[Callback] = None
    skip_validation: bool = False
    expected_hashes: Mapping[str, str] = field(default_factory=dict)
    instance_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))
        object.__setattr__(self, "expected_hashes", MappingProxyType(dict(self.expected_hashes)))
        if self.metadata is not None:
            object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))


@dataclass
class TransactionResult:
    """Outcome of a broadcast transaction."""

    tx_hash: str
    requires_db_update: bool
    requires_on_chain_confirmation: bool
    api_response: Optional[dict] = None
    explorer_url: Optional[str] = None
    tracked: bool = True

    @property
    def needs_watcher(self) -> bool:
        """Whether the gateway still has work to report on after submission."""
        return self.requires_db_update or self.requires_on_chain_confirmation


StateListener = Callable[[TransactionState], None]


class TransactionOrchestrator:
    """Runs transactions through their lifecycle, one attempt at a time.

    At most one execution is in flight per instance; a second ``execute()``
    during that time is ignored. Every failure ends in the ``error`` state
    and the request's ``on_error`` callback. ``execute()`` raises only
    ``asyncio.CancelledError``, after recording the cancellation that way.
    """

    def __init__(
        self,
        gateway: GatewayClient,
        wallet: WalletAdapter,
        session: Optional[Session] = None,
        watcher: Optional["ConfirmationWatcher"] = None,
        explorer_base_url: Optional[str] = None,
    ):
        self.gateway = gateway
        self.wallet = wallet
        self.session = session
        self.watcher = watcher
        self.explorer_base_url = explorer_base_url

        self._state = TransactionState.IDLE
        self._result: Optional[TransactionResult] = None
        self._error: Optional[TxFlowError] = None
        self._tx_hash: Optional[str] = None
        self._history: list[TransactionState] = [TransactionState.IDLE]
        self._listeners: list[StateListener] = []
        self.watch: Optional["Watch"] = None

    # ======================
    # Observable state
    # ======================

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def result(self) -> Optional[TransactionResult]:
        return self._result

    @property
    def error(self) -> Optional[TxFlowError]:
        return self._error

    @property
    def history(self) -> list[TransactionState]:
        """States visited by the current attempt, in order."""
        return list(self._history)

    @property
    def is_idle(self) -> bool:
        return self._state == TransactionState.IDLE

    @property
    def is_loading(self) -> bool:
        return self._state in IN_FLIGHT_STATES

    @property
    def is_success(self) -> bool:
        return self._state == TransactionState.SUCCESS

    @property
    def is_error(self) -> bool:
        return self._state == TransactionState.ERROR

    def add_state_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called on every state change; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _transition(self, new_state: TransactionState) -> None:
        if new_state not in VALID_TRANSITIONS[self._state]:
            raise InvalidTransitionError(
                f"Invalid transition: {self._state.value} -> {new_state.value}"
            )

        logger.debug(f"Transaction state: {self._state.value} -> {new_state.value}")
        self._state = new_state
        self._history.append(new_state)

        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception as e:
                logger.error(f"State listener error: {e}")

    # ======================
    # Lifecycle
    # ======================

    def reset(self) -> None:
        """Return to idle. Ignored while a transaction is in flight."""
        if self.is_loading:
            logger.warning(f"reset() ignored: transaction in flight ({self._state.value})")
            return

        if self._state != TransactionState.IDLE:
            self._transition(TransactionState.IDLE)
        self._result = None
        self._error = None
        self._history = [TransactionState.IDLE]
        self._tx_hash = None
        self.watch = None

    async def execute(self, request: TransactionRequest, track_confirmation: bool = False) -> None:
        """Execute a transaction request.

        Args:
            request: What to build and the callbacks to notify
            track_confirmation: After registration, wait in ``confirming``
                for the gateway's terminal status before reporting success
        """
        # Check-and-set happens before the first await
        if self.is_loading:
            logger.warning(
                f"execute() ignored: {request.tx_type} requested while "
                f"{self._state.value}"
            )
            return

        self.reset()
        self._transition(TransactionState.FETCHING)

        try:
            result = await self._run(request, track_confirmation)
        except asyncio.CancelledError:
            await self._fail(request, self._cancellation_error(request))
            raise
        except TxFlowError as e:
            await self._fail(request, e)
            return
        except Exception as e:
            logger.exception(f"Unexpected error executing {request.tx_type}")
            await self._fail(request, TxFlowError(str(e)))
            return

        self._transition(TransactionState.SUCCESS)
        logger.info(f"Transaction {result.tx_hash} ({request.tx_type}) succeeded")
        await invoke_callback(request.on_success, result, name="on_success")

    async def _fail(self, request: TransactionRequest, error: TxFlowError) -> None:
        self._error = error
        if isinstance(error, SubmittedTransactionError):
            logger.error(f"Transaction {error.tx_hash} is on-chain: {error}")
        else:
            logger.warning(f"Transaction {request.tx_type} failed: {error}")
        self._transition(TransactionState.ERROR)
        await invoke_callback(request.on_error, error, name="on_error")

    def _cancellation_error(self, request: TransactionRequest) -> TxFlowError:
        logger.warning(f"Transaction {request.tx_type} cancelled while {self._state.value}")
        if self.watch is not None:
            self.watch.cancel()

        tx_hash = self._tx_hash
        if tx_hash is None:
            return TransactionCancelledError(f"Cancelled while {self._state.value}")
        if self._result is not None:
            return TrackingStoppedError(
                tx_hash,
                f"Cancelled while tracking {tx_hash}",
                status=self.watch.status if self.watch else None,
            )

        config = get_tx_config(request.tx_type)
        self._result = TransactionResult(
            tx_hash=tx_hash,
            requires_db_update=config.requires_db_update,
            requires_on_chain_confirmation=config.requires_on_chain_confirmation,
            explorer_url=self._explorer_url(tx_hash),
            tracked=False,
        )
        return SubmittedButUntrackedError(tx_hash, f"Cancelled before {tx_hash} was registered")

    async def _run(self, request: TransactionRequest, track_confirmation: bool) -> TransactionResult:
        config = self._validate_request(request)

        # FETCHING
        params = await self._prepare_params(request, config)
        unsigned = await self._build(request, config, params)

        # SIGNING
        self._transition(TransactionState.SIGNING)
        signed = await self._sign(unsigned)

        # SUBMITTING
        self._transition(TransactionState.SUBMITTING)
        tx_hash = await self._submit(signed)
        self._tx_hash = tx_hash
        registration = await self._register(request, config, tx_hash)

        result = TransactionResult(
            tx_hash=tx_hash,
            requires_db_update=_flag(registration, "requires_db_update", config.requires_db_update),
            requires_on_chain_confirmation=_flag(
                registration,
                "requires_on_chain_confirmation",
                config.requires_on_chain_confirmation,
            ),
            api_response=registration.api_response if registration else None,
            explorer_url=self._explorer_url(tx_hash),
        )
        self._result = result

        echoed = dict(unsigned.extras())
        if registration:
            echoed.update(registration.echoed())
        check_echoed_hashes(request.expected_hashes, echoed, context=tx_hash)

        if track_confirmation and self.watcher and result.needs_watcher:
            self._transition(TransactionState.CONFIRMING)
            self.watch = self.watcher.watch(tx_hash)
            final = await self.watch.wait()
            if final is None or not final.is_terminal or self.watch.timed_out:
                raise TrackingStoppedError(
                    tx_hash, f"Stopped tracking {tx_hash} before confirmation", status=final
                )
            if not final.is_success:
                raise ConfirmationError(final)

        return result

    def _validate_request(self, request: TransactionRequest) -> TxTypeConfig:
        if not self.wallet.is_connected:
            raise WalletNotConnectedError("Wallet not connected")

        if not is_transaction_type(request.tx_type):
            raise ValidationError(
                f"Unknown transaction type: {request.tx_type}",
                errors=[f"tx_type: unknown transaction type {request.tx_type}"],
            )

        config = get_tx_config(request.tx_type)
        if config.requires_auth and self.session is not None and not self.session.is_authenticated:
            raise ValidationError(
                f"{request.tx_type} requires an authenticated session",
                errors=["session: not authenticated"],
            )
        return config

    async def _prepare_params(self, request: TransactionRequest, config: TxTypeConfig) -> dict:
        params = dict(request.params)

        if "initiator_data" not in params and config.initiator_format != InitiatorFormat.NONE:
            try:
                if config.initiator_format == InitiatorFormat.ADDRESS:
                    params["initiator_data"] = await self.wallet.get_change_address()
                else:
                    params["initiator_data"] = await self.wallet.initiator_data()
            except TxFlowError:
                raise
            except Exception as e:
                raise WalletError(f"Could not read wallet addresses: {e}") from e

        if request.skip_validation:
            return params
        return validate_params(request.tx_type, params)

    async def _build(
        self, request: TransactionRequest, config: TxTypeConfig, params: dict
    ) -> UnsignedTransaction:
        logger.info(f"Building {request.tx_type} via {config.endpoint}")
        try:
            unsigned = await self.gateway.build_transaction(config.endpoint, params)
        except BuildError:
            raise
        except GatewayError as e:
            raise BuildError(f"Build failed: {e.detail}", user_message=e.detail) from e

        logger.debug(f"Built unsigned transaction ({len(unsigned.unsigned_tx or '')} chars)")
        return unsigned

    async def _sign(self, unsigned: UnsignedTransaction) -> str:
        try:
            signed = await self.wallet.sign_tx(unsigned.unsigned_tx, partial=True)
        except SigningError:
            raise
        except Exception as e:
            raise WalletError(f"Signing failed: {e}") from e

        if not signed:
            raise WalletError("Wallet returned an empty signed transaction")
        return signed

    async def _submit(self, signed: str) -> str:
        try:
            tx_hash = await self.wallet.submit_tx(signed)
        except SubmissionError:
            raise
        except Exception as e:
            raise SubmissionError(f"Submit failed: {e}") from e

        if not tx_hash:
            raise SubmissionError("Wallet returned no transaction hash")
        logger.info(f"Transaction submitted: {tx_hash}")
        return tx_hash

    async def _register(
        self, request: TransactionRequest, config: TxTypeConfig, tx_hash: str
    ) -> Optional[RegisterResponse]:
        if not config.requires_tracking:
            return None

        try:
            registration = await self.gateway.register_transaction(
                tx_hash,
                config.gateway_type,
                metadata=dict(request.metadata) if request.metadata else None,
                instance_id=request.instance_id,
            )
        except Exception as e:
            # Broadcast already happened; keep a result so callers can show the hash
            self._result = TransactionResult(
                tx_hash=tx_hash,
                requires_db_update=config.requires_db_update,
                requires_on_chain_confirmation=config.requires_on_chain_confirmation,
                explorer_url=self._explorer_url(tx_hash),
                tracked=False,
            )
            raise SubmittedButUntrackedError(
                tx_hash, f"Transaction {tx_hash} submitted but registration failed: {e}"
            ) from e

        logger.info(f"Transaction {tx_hash} registered as {config.gateway_type}")
        return registration

    def _explorer_url(self, tx_hash: str) -> Optional[str]:
        if not self.explorer_base_url:
            return None
        return f"{self.explorer_base_url.rstrip('/')}/{tx_hash}"


def _flag(registration: Optional[RegisterResponse], name: str, default: bool) -> bool:
    if registration is None:
        return default
    value = getattr(registration, name)
    return default if value is None else value
