"""Parameter schemas for transaction build requests.

One pydantic model per transaction type, mirroring the gateway's request
bodies. ``validate_params`` runs before any network call so malformed
requests fail locally with every problem listed.
"""

from typing import Annotated, Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic import ValidationError as PydanticValidationError

from txflow.errors import ValidationError
from txflow.transactions.types import TransactionType

# =============================================================================
# Building blocks
# =============================================================================

Alias = Annotated[str, StringConstraints(min_length=1, max_length=31)]
PolicyId = Annotated[str, StringConstraints(min_length=56, max_length=56)]
Hash = Annotated[str, StringConstraints(min_length=64, max_length=64)]
ShortText = Annotated[str, StringConstraints(max_length=140)]
Number = Union[int, float]

# [asset_class, quantity] pairs; asset class is "lovelace" or "policy_id.asset_name"
Value = list[tuple[str, Number]]


class WalletData(BaseModel):
    """Wallet addresses used for UTxO selection and change output."""

    used_addresses: list[str]
    change_address: str


class TxParams(BaseModel):
    """Base for all parameter schemas."""

    model_config = ConfigDict(extra="ignore")

    alias: Alias


class WalletParams(TxParams):
    initiator_data: Optional[WalletData] = None


# =============================================================================
# Global
# =============================================================================


class AccessTokenMintParams(TxParams):
    initiator_data: Annotated[str, StringConstraints(min_length=1)] = Field(
        ..., description="Bech32 change address"
    )


class AccessTokenClaimParams(TxParams):
    pass


# =============================================================================
# Instance
# =============================================================================


class CourseCreateParams(WalletParams):
    teachers: list[Alias]


class ProjectCreateParams(WalletParams):
    managers: list[Alias]
    course_prereqs: list[tuple[PolicyId, list[Hash]]]


# =============================================================================
# Course
# =============================================================================


class TeachersManageParams(WalletParams):
    course_id: PolicyId
    teachers_to_add: list[Alias]
    teachers_to_remove: list[Alias]


class ModuleToAdd(BaseModel):
    slts: list[str]
    allowed_student_state_ids: list[PolicyId]
    prereq_slt_hashes: list[Hash]


class ModuleToUpdate(BaseModel):
    slt_hash: Hash
    allowed_student_state_ids: list[PolicyId]
    prereq_slt_hashes: list[Hash]


class ModulesManageParams(WalletParams):
    course_id: PolicyId
    modules_to_add: list[ModuleToAdd]
    modules_to_update: list[ModuleToUpdate]
    modules_to_remove: list[str]


class Decision(BaseModel):
    alias: Alias
    outcome: str  # accept, refuse, deny


class AssignmentsAssessParams(WalletParams):
    course_id: PolicyId
    assignment_decisions: list[Decision]


class AssignmentCommitParams(WalletParams):
    course_id: PolicyId
    slt_hash: Hash
    assignment_info: ShortText


class AssignmentUpdateParams(WalletParams):
    course_id: PolicyId
    assignment_info: ShortText


class CourseCredentialClaimParams(WalletParams):
    course_id: PolicyId


# =============================================================================
# Project
# =============================================================================


class ManagersManageParams(WalletParams):
    project_id: PolicyId
    managers_to_add: list[Alias]
    managers_to_remove: list[Alias]


class BlacklistManageParams(WalletParams):
    project_id: PolicyId
    aliases_to_add: list[Alias]
    aliases_to_remove: list[Alias]


class TaskData(BaseModel):
    project_content: ShortText
    expiration_posix: Number
    lovelace_amount: Number
    native_assets: Value


class TasksManageParams(WalletParams):
    project_id: PolicyId
    contributor_state_id: PolicyId
    tasks_to_add: list[TaskData]
    tasks_to_remove: list[TaskData]
    deposit_value: Value


class TasksAssessParams(WalletParams):
    project_id: PolicyId
    contributor_state_id: PolicyId
    task_decisions: list[Decision]


class TaskCommitParams(WalletParams):
    project_id: PolicyId
    contributor_state_id: PolicyId
    task_hash: Hash
    task_info: ShortText
    fee_tier: Optional[str] = None


class TaskActionParams(WalletParams):
    project_id: PolicyId
    contributor_state_id: PolicyId
    task_hash: Hash
    project_info: ShortText


class ProjectCredentialClaimParams(WalletParams):
    project_id: PolicyId
    contributor_state_id: PolicyId
    fee_tier: Optional[str] = None


class TreasuryAddFundsParams(WalletParams):
    project_id: PolicyId
    deposit_value: Value


TX_SCHEMAS: dict[TransactionType, type[TxParams]] = {
    TransactionType.GLOBAL_GENERAL_ACCESS_TOKEN_MINT: AccessTokenMintParams,
    TransactionType.GLOBAL_USER_ACCESS_TOKEN_CLAIM: AccessTokenClaimParams,
    TransactionType.INSTANCE_COURSE_CREATE: CourseCreateParams,
    TransactionType.INSTANCE_PROJECT_CREATE: ProjectCreateParams,
    TransactionType.COURSE_OWNER_TEACHERS_MANAGE: TeachersManageParams,
    TransactionType.COURSE_TEACHER_MODULES_MANAGE: ModulesManageParams,
    TransactionType.COURSE_TEACHER_ASSIGNMENTS_ASSESS: AssignmentsAssessParams,
    TransactionType.COURSE_STUDENT_ASSIGNMENT_COMMIT: AssignmentCommitParams,
    TransactionType.COURSE_STUDENT_ASSIGNMENT_UPDATE: AssignmentUpdateParams,
    TransactionType.COURSE_STUDENT_CREDENTIAL_CLAIM: CourseCredentialClaimParams,
    TransactionType.PROJECT_OWNER_MANAGERS_MANAGE: ManagersManageParams,
    TransactionType.PROJECT_OWNER_BLACKLIST_MANAGE: BlacklistManageParams,
    TransactionType.PROJECT_MANAGER_TASKS_MANAGE: TasksManageParams,
    TransactionType.PROJECT_MANAGER_TASKS_ASSESS: TasksAssessParams,
    TransactionType.PROJECT_CONTRIBUTOR_TASK_COMMIT: TaskCommitParams,
    TransactionType.PROJECT_CONTRIBUTOR_TASK_ACTION: TaskActionParams,
    TransactionType.PROJECT_CONTRIBUTOR_CREDENTIAL_CLAIM: ProjectCredentialClaimParams,
    TransactionType.PROJECT_USER_TREASURY_ADD_FUNDS: TreasuryAddFundsParams,
}


def _format_error(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ())) or "params"
    return f"{location}: {error.get('msg', 'invalid value')}"


def validate_params(tx_type: TransactionType | str, params: Any) -> dict[str, Any]:
    """Validate build parameters for a transaction type.

    Returns:
        Validated parameters, unknown keys and unset optionals removed

    Raises:
        ValidationError: Unknown type or invalid parameters (``errors``
            lists one entry per problem)
    """
    try:
        schema = TX_SCHEMAS[TransactionType(tx_type)]
    except (KeyError, ValueError):
        raise ValidationError(
            f"Unknown transaction type: {tx_type}",
            errors=[f"tx_type: unknown transaction type {tx_type}"],
        )

    try:
        validated = schema.model_validate(params)
    except PydanticValidationError as e:
        errors = [_format_error(error) for error in e.errors()]
        raise ValidationError(
            f"Invalid parameters for {TransactionType(tx_type).value}: {'; '.join(errors)}",
            errors=errors,
        ) from e

    return validated.model_dump(mode="json", exclude_none=True)
