"""Gateway request and response contracts.

The gateway owns transaction status records; the client only reads them.
Unknown response fields are ignored so gateway additions never break
parsing.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class TxState(str, Enum):
    """Gateway-side confirmation state of a registered transaction."""

    PENDING = "pending"  # Submitted, awaiting on-chain confirmation
    CONFIRMED = "confirmed"  # On-chain, gateway still processing DB updates
    UPDATED = "updated"  # On-chain and DB updates complete (success)
    FAILED = "failed"  # Gave up after max retries
    EXPIRED = "expired"  # Exceeded TTL without confirmation


TERMINAL_STATES = frozenset({TxState.UPDATED, TxState.FAILED, TxState.EXPIRED})

# Lifecycle order used to drop stale updates. All terminal states share the top rank.
STATE_RANK = {
    TxState.PENDING: 0,
    TxState.CONFIRMED: 1,
    TxState.UPDATED: 2,
    TxState.FAILED: 2,
    TxState.EXPIRED: 2,
}


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class TxStatus(BaseModel):
    """Status record for a registered transaction."""

    model_config = ConfigDict(extra="ignore")

    tx_hash: str = Field(..., description="Transaction hash (64 hex characters)")
    tx_type: str = Field(default="", description="Gateway transaction type")
    state: TxState = Field(..., description="Current lifecycle state")
    last_error: Optional[str] = Field(None, description="Last error if the transaction failed")
    confirmed_at: Optional[datetime] = Field(None, description="On-chain confirmation time")
    retry_count: int = Field(default=0, description="Confirmation polling retries so far")

    created_at: Optional[datetime] = Field(None, description="Registration time")
    updated_at: Optional[datetime] = Field(None, description="Last state change time")
    metadata: Optional[dict[str, str]] = Field(None, description="Registration metadata")
    instance_id: Optional[str] = Field(None, description="Course or project id")
    user_id: Optional[str] = Field(None, description="User who registered the transaction")

    @field_validator("last_error", "confirmed_at", "created_at", "updated_at", mode="before")
    @classmethod
    def _empty_is_missing(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("tx_type", mode="before")
    @classmethod
    def _type_default(cls, value: Any) -> Any:
        return value or ""

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_success(self) -> bool:
        return self.state == TxState.UPDATED

    @property
    def is_failed(self) -> bool:
        return self.state in (TxState.FAILED, TxState.EXPIRED)

    @property
    def rank(self) -> int:
        return STATE_RANK[self.state]


class UnsignedTransaction(BaseModel):
    """Build response: unsigned transaction plus any endpoint-specific extras.

    Some endpoints return extra fields (course_id, project_id, slt_hashes);
    they are kept and exposed through ``extras()``.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    unsigned_tx: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("unsigned_tx", "unsignedTxCBOR"),
        description="Unsigned transaction (CBOR hex)",
    )

    def extras(self) -> dict[str, Any]:
        """Endpoint-specific fields returned alongside the unsigned transaction."""
        return dict(self.model_extra or {})


class RegisterRequest(BaseModel):
    """Body of ``POST /tx/register``."""

    tx_hash: str = Field(..., description="Hash returned by the wallet on submit")
    tx_type: str = Field(..., description="Gateway transaction type")
    metadata: Optional[dict[str, str]] = Field(None, description="Off-chain data for DB updates")
    instance_id: Optional[str] = Field(None, description="Course or project id for scoping")


class RegisterResponse(BaseModel):
    """Response of ``POST /tx/register``.

    Flags left as None mean the gateway did not declare them; callers fall
    back to the local transaction type registry.
    """

    model_config = ConfigDict(extra="allow")

    requires_db_update: Optional[bool] = None
    requires_on_chain_confirmation: Optional[bool] = None
    api_response: Optional[dict[str, Any]] = None

    def echoed(self) -> dict[str, Any]:
        """Every field the gateway returned, for hash consistency checks."""
        data = dict(self.model_extra or {})
        if self.api_response:
            data.update(self.api_response)
        return data


# =============================================================================
# Stream events
# =============================================================================


class StateEvent(BaseModel):
    """``state`` event: full status snapshot, sent on connect."""

    model_config = ConfigDict(extra="ignore")

    tx_hash: Optional[str] = None
    state: TxState
    tx_type: Optional[str] = None
    retry_count: int = 0
    confirmed_at: Optional[str] = None
    last_error: Optional[str] = None


class StateChangeEvent(BaseModel):
    """``state_change`` event: transition between two states."""

    model_config = ConfigDict(extra="ignore")

    tx_hash: Optional[str] = None
    previous_state: Optional[TxState] = None
    new_state: TxState


class CompleteEvent(BaseModel):
    """``complete`` event: terminal state reached, stream closes after it."""

    model_config = ConfigDict(extra="ignore")

    tx_hash: Optional[str] = None
    final_state: TxState
    tx_type: Optional[str] = None
    confirmed_at: Optional[str] = None
    last_error: Optional[str] = None
