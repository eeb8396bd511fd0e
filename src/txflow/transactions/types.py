"""Transaction type registry.

Maps each protocol transaction type to its build endpoint, the type name
the gateway uses for registration, and whether the gateway must track it
after submission.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class TransactionType(str, Enum):
    """Protocol transaction types."""

    # Global
    GLOBAL_GENERAL_ACCESS_TOKEN_MINT = "GLOBAL_GENERAL_ACCESS_TOKEN_MINT"
    GLOBAL_USER_ACCESS_TOKEN_CLAIM = "GLOBAL_USER_ACCESS_TOKEN_CLAIM"

    # Instance
    INSTANCE_COURSE_CREATE = "INSTANCE_COURSE_CREATE"
    INSTANCE_PROJECT_CREATE = "INSTANCE_PROJECT_CREATE"

    # Course
    COURSE_OWNER_TEACHERS_MANAGE = "COURSE_OWNER_TEACHERS_MANAGE"
    COURSE_TEACHER_MODULES_MANAGE = "COURSE_TEACHER_MODULES_MANAGE"
    COURSE_TEACHER_ASSIGNMENTS_ASSESS = "COURSE_TEACHER_ASSIGNMENTS_ASSESS"
    COURSE_STUDENT_ASSIGNMENT_COMMIT = "COURSE_STUDENT_ASSIGNMENT_COMMIT"
    COURSE_STUDENT_ASSIGNMENT_UPDATE = "COURSE_STUDENT_ASSIGNMENT_UPDATE"
    COURSE_STUDENT_CREDENTIAL_CLAIM = "COURSE_STUDENT_CREDENTIAL_CLAIM"

    # Project
    PROJECT_OWNER_MANAGERS_MANAGE = "PROJECT_OWNER_MANAGERS_MANAGE"
    PROJECT_OWNER_BLACKLIST_MANAGE = "PROJECT_OWNER_BLACKLIST_MANAGE"
    PROJECT_MANAGER_TASKS_MANAGE = "PROJECT_MANAGER_TASKS_MANAGE"
    PROJECT_MANAGER_TASKS_ASSESS = "PROJECT_MANAGER_TASKS_ASSESS"
    PROJECT_CONTRIBUTOR_TASK_COMMIT = "PROJECT_CONTRIBUTOR_TASK_COMMIT"
    PROJECT_CONTRIBUTOR_TASK_ACTION = "PROJECT_CONTRIBUTOR_TASK_ACTION"
    PROJECT_CONTRIBUTOR_CREDENTIAL_CLAIM = "PROJECT_CONTRIBUTOR_CREDENTIAL_CLAIM"
    PROJECT_USER_TREASURY_ADD_FUNDS = "PROJECT_USER_TREASURY_ADD_FUNDS"


class InitiatorFormat(str, Enum):
    """How the wallet's addresses are passed to the build endpoint."""

    WALLET = "wallet"  # {used_addresses, change_address}
    ADDRESS = "address"  # Single change address string
    NONE = "none"  # Endpoint takes no initiator data


@dataclass(frozen=True)
class TxTypeConfig:
    """Static configuration for a transaction type.

    Attributes:
        endpoint: Build endpoint, relative to the gateway base URL
        gateway_type: Type name sent on registration
        requires_db_update: Gateway updates off-chain records after confirmation
        requires_on_chain_confirmation: Gateway tracks confirmation even
            without DB updates
        success_message: Text shown once the transaction succeeds
        initiator_format: Shape of the initiator data the endpoint expects
        requires_auth: Build and registration need a signed-in user
    """

    endpoint: str
    gateway_type: str
    requires_db_update: bool = True
    requires_on_chain_confirmation: bool = False
    success_message: str = "Transaction submitted successfully!"
    initiator_format: InitiatorFormat = InitiatorFormat.WALLET
    requires_auth: bool = True

    @property
    def requires_tracking(self) -> bool:
        return self.requires_db_update or self.requires_on_chain_confirmation


TX_TYPE_CONFIGS: dict[TransactionType, TxTypeConfig] = {
    # Global
    TransactionType.GLOBAL_GENERAL_ACCESS_TOKEN_MINT: TxTypeConfig(
        endpoint="/tx/global/user/access-token/mint",
        gateway_type="access_token_mint",
        requires_db_update=False,
        requires_on_chain_confirmation=True,
        success_message="Access Token Created!",
        initiator_format=InitiatorFormat.ADDRESS,
        requires_auth=False,
    ),
    TransactionType.GLOBAL_USER_ACCESS_TOKEN_CLAIM: TxTypeConfig(
        endpoint="/tx/global/user/access-token/claim",
        gateway_type="access_token_mint",
        requires_db_update=False,
        requires_on_chain_confirmation=True,
        success_message="V2 access token claimed successfully!",
        initiator_format=InitiatorFormat.NONE,
        requires_auth=False,
    ),
    # Instance
    TransactionType.INSTANCE_COURSE_CREATE: TxTypeConfig(
        endpoint="/tx/instance/owner/course/create",
        gateway_type="course_create",
        success_message="Course created successfully!",
    ),
    TransactionType.INSTANCE_PROJECT_CREATE: TxTypeConfig(
        endpoint="/tx/instance/owner/project/create",
        gateway_type="project_create",
        success_message="Project created successfully!",
    ),
    # Course
    TransactionType.COURSE_OWNER_TEACHERS_MANAGE: TxTypeConfig(
        endpoint="/tx/course/owner/teachers/manage",
        gateway_type="teachers_update",
        success_message="Course teachers updated successfully!",
    ),
    TransactionType.COURSE_TEACHER_MODULES_MANAGE: TxTypeConfig(
        endpoint="/tx/course/teacher/modules/manage",
        gateway_type="modules_manage",
        success_message="Course modules managed successfully!",
    ),
    TransactionType.COURSE_TEACHER_ASSIGNMENTS_ASSESS: TxTypeConfig(
        endpoint="/tx/course/teacher/assignments/assess",
        gateway_type="assessment_assess",
        success_message="Assessment Submitted!",
    ),
    TransactionType.COURSE_STUDENT_ASSIGNMENT_COMMIT: TxTypeConfig(
        endpoint="/tx/course/student/assignment/commit",
        gateway_type="assignment_submit",
        success_message="Assignment Submitted!",
    ),
    TransactionType.COURSE_STUDENT_ASSIGNMENT_UPDATE: TxTypeConfig(
        endpoint="/tx/course/student/assignment/update",
        gateway_type="assignment_submit",
        success_message="Assignment Updated!",
    ),
    TransactionType.COURSE_STUDENT_CREDENTIAL_CLAIM: TxTypeConfig(
        endpoint="/tx/course/student/credential/claim",
        gateway_type="credential_claim",
        success_message="Credential claimed successfully!",
    ),
    # Project
    TransactionType.PROJECT_OWNER_MANAGERS_MANAGE: TxTypeConfig(
        endpoint="/tx/project/owner/managers/manage",
        gateway_type="managers_manage",
        success_message="Project managers updated successfully!",
    ),
    TransactionType.PROJECT_OWNER_BLACKLIST_MANAGE: TxTypeConfig(
        endpoint="/tx/project/owner/contributor-blacklist/manage",
        gateway_type="blacklist_update",
        success_message="Contributor blacklist updated successfully!",
    ),
    TransactionType.PROJECT_MANAGER_TASKS_MANAGE: TxTypeConfig(
        endpoint="/tx/project/manager/tasks/manage",
        gateway_type="tasks_manage",
        success_message="Project tasks managed successfully!",
    ),
    TransactionType.PROJECT_MANAGER_TASKS_ASSESS: TxTypeConfig(
        endpoint="/tx/project/manager/tasks/assess",
        gateway_type="task_assess",
        success_message="Task assessment submitted successfully!",
    ),
    TransactionType.PROJECT_CONTRIBUTOR_TASK_COMMIT: TxTypeConfig(
        endpoint="/tx/project/contributor/task/commit",
        gateway_type="project_join",
        success_message="Successfully committed to task!",
    ),
    TransactionType.PROJECT_CONTRIBUTOR_TASK_ACTION: TxTypeConfig(
        endpoint="/tx/project/contributor/task/action",
        gateway_type="task_submit",
        success_message="Task action completed successfully!",
    ),
    TransactionType.PROJECT_CONTRIBUTOR_CREDENTIAL_CLAIM: TxTypeConfig(
        endpoint="/tx/project/contributor/credential/claim",
        gateway_type="project_credential_claim",
        success_message="Credentials claimed successfully!",
    ),
    TransactionType.PROJECT_USER_TREASURY_ADD_FUNDS: TxTypeConfig(
        endpoint="/tx/project/user/treasury/add-funds",
        gateway_type="treasury_fund",
        success_message="Funds added to treasury successfully!",
    ),
}


def is_transaction_type(value: Any) -> bool:
    """Check whether a value names a known transaction type."""
    if isinstance(value, TransactionType):
        return True
    return isinstance(value, str) and value in TransactionType.__members__


def get_tx_config(tx_type: TransactionType | str) -> TxTypeConfig:
    """Get the configuration for a transaction type.

    Raises:
        KeyError: Unknown transaction type
    """
    return TX_TYPE_CONFIGS[TransactionType(tx_type)]


def get_gateway_tx_type(tx_type: TransactionType | str) -> str:
    """Map a transaction type to the name the gateway registers it under.

    Unknown types are passed through lower-cased.
    """
    if is_transaction_type(tx_type):
        return get_tx_config(tx_type).gateway_type

    fallback = str(tx_type).lower()
    logger.warning(f"Unknown transaction type {tx_type}, registering as {fallback}")
    return fallback
