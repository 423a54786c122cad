"""
Settlement Recorder

Persists a confirmed settlement as two linked transactions:

    payer    -> settlement_paid      "Settlement paid to <receiver>"
    receiver -> settlement_received  "Settlement received from <payer>"

CRITICAL: The pair is written in ONE atomic storage call. Either both
transactions exist afterwards or neither does. A half-recorded settlement
would move only one side's balance and break the zero-sum property.

KNOWN GAP: There is no idempotency key. Submitting the same settlement
twice records it twice.
"""

from datetime import date
from typing import Any, Optional
from uuid import UUID

import structlog

from src.audit import AuditLogger
from src.errors import NotFoundError, TransactionFailedError
from src.models.finance import (
    SETTLEMENT_CATEGORY,
    SettlementRecord,
    Transaction,
    TransactionKind,
)
from src.services.storage import (
    GroupStorageInterface,
    StorageError,
    TransactionStorageInterface,
)
from src.validation import (
    RequestValidator,
    parse_amount,
    parse_uuid,
    raise_for_errors,
)


logger = structlog.get_logger("group_budget.settlement")


class SettlementRecorder:
    """Validates and records settlement pairs."""

    def __init__(
        self,
        group_storage: GroupStorageInterface,
        transaction_storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[RequestValidator] = None,
    ):
        self._groups = group_storage
        self._transactions = transaction_storage
        self._audit = audit_logger or AuditLogger()
        self._validator = validator or RequestValidator()

    async def record_settlement(
        self,
        from_profile_id: Any,
        to_profile_id: Any,
        group_id: Any,
        amount: Any,
        on_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementRecord:
        """
        Record that one member paid another.

        Args:
            from_profile_id: The payer (debtor)
            to_profile_id: The receiver (creditor)
            group_id: Group both belong to
            amount: Positive amount, rounded to 2 places
            on_date: Recording date (defaults to today)
            correlation_id: For tracing

        Raises:
            InvalidInputError: Missing ids, non-positive amount, self-settlement
            NotFoundError: Unknown group, or a profile outside the group
            TransactionFailedError: The pair could not be committed
        """
        result = self._validator.validate_settlement(
            from_profile_id, to_profile_id, group_id, amount
        )
        raise_for_errors(result, "Invalid settlement")
        for warning in result.warnings:
            logger.warning("settlement_validation_warning", message=warning)

        value = parse_amount(amount)

        group = await self._groups.get_group(parse_uuid(group_id))
        if group is None:
            raise NotFoundError(f"Group not found: {group_id}")

        payer = group.get_profile(parse_uuid(from_profile_id))
        receiver = group.get_profile(parse_uuid(to_profile_id))
        if payer is None or receiver is None:
            raise NotFoundError("Profile not found in group")

        on_date = on_date or date.today()

        paid = Transaction(
            profile_id=payer.id,
            group_id=group.id,
            amount=value,
            transaction_date=on_date,
            description=f"Settlement paid to {receiver.name}",
            category=SETTLEMENT_CATEGORY,
            kind=TransactionKind.SETTLEMENT_PAID,
        )
        received = Transaction(
            profile_id=receiver.id,
            group_id=group.id,
            amount=value,
            transaction_date=on_date,
            description=f"Settlement received from {payer.name}",
            category=SETTLEMENT_CATEGORY,
            kind=TransactionKind.SETTLEMENT_RECEIVED,
        )

        try:
            await self._transactions.save_transactions_atomic([paid, received])
        except StorageError as e:
            await self._audit.log_settlement_failed(
                group_id=group.id,
                from_profile_id=payer.id,
                to_profile_id=receiver.id,
                amount=str(value),
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise TransactionFailedError(f"Failed to record settlement: {e}") from e

        await self._audit.log_settlement_recorded(
            group_id=group.id,
            paid_transaction_id=paid.id,
            received_transaction_id=received.id,
            from_name=payer.name,
            to_name=receiver.name,
            amount=str(value),
            correlation_id=correlation_id,
        )

        return SettlementRecord(paid=paid, received=received)
