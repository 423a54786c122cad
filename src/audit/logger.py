"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability of settlements and budget changes
2. Debugging capability when balances look wrong
3. A visible record of depreciation applied on read

The audit logger:
- Is async to not block main flow
- Gracefully handles storage failures (logging must never break a settlement)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from src.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("group_budget.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_group_created(
        self,
        group_id: UUID,
        name: str,
        profile_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.group_created(
            group_id=group_id,
            name=name,
            profile_count=profile_count,
            correlation_id=correlation_id,
        ))

    async def log_group_updated(
        self,
        group_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEvent(
            event_type=AuditEventType.GROUP_UPDATED,
            entity_type="group",
            entity_id=group_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Group renamed to {name}",
            is_user_action=True,
        ))

    async def log_group_deleted(
        self,
        group_id: UUID,
        removed_transactions: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.group_deleted(
            group_id=group_id,
            removed_transactions=removed_transactions,
            correlation_id=correlation_id,
        ))

    async def log_profile_added(
        self,
        group_id: UUID,
        profile_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.profile_added(
            group_id=group_id,
            profile_id=profile_id,
            name=name,
            correlation_id=correlation_id,
        ))

    async def log_profile_deleted(
        self,
        group_id: UUID,
        profile_id: UUID,
        removed_transactions: int,
        removed_budgets: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.profile_deleted(
            group_id=group_id,
            profile_id=profile_id,
            removed_transactions=removed_transactions,
            removed_budgets=removed_budgets,
            correlation_id=correlation_id,
        ))

    async def log_transaction_changed(
        self,
        event_type: AuditEventType,
        transaction_id: UUID,
        group_id: UUID,
        kind: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a transaction create/update/delete."""
        await self.log(AuditEventBuilder.transaction_changed(
            event_type=event_type,
            transaction_id=transaction_id,
            group_id=group_id,
            kind=kind,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_budgets_replaced(
        self,
        group_id: UUID,
        profile_id: UUID,
        categories: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.budgets_replaced(
            group_id=group_id,
            profile_id=profile_id,
            categories=categories,
            correlation_id=correlation_id,
        ))

    async def log_balances_computed(
        self,
        group_id: UUID,
        total_expense: Decimal,
        profile_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.balances_computed(
            group_id=group_id,
            total_expense=total_expense,
            profile_count=profile_count,
            correlation_id=correlation_id,
        ))

    async def log_settlements_planned(
        self,
        group_id: UUID,
        settlement_count: int,
        total_amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.settlements_planned(
            group_id=group_id,
            settlement_count=settlement_count,
            total_amount=total_amount,
            correlation_id=correlation_id,
        ))

    async def log_settlement_recorded(
        self,
        group_id: UUID,
        paid_transaction_id: UUID,
        received_transaction_id: UUID,
        from_name: str,
        to_name: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a committed settlement pair."""
        await self.log(AuditEventBuilder.settlement_recorded(
            group_id=group_id,
            paid_transaction_id=paid_transaction_id,
            received_transaction_id=received_transaction_id,
            from_name=from_name,
            to_name=to_name,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_settlement_failed(
        self,
        group_id: UUID,
        from_profile_id: UUID,
        to_profile_id: UUID,
        amount: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.settlement_failed(
            group_id=group_id,
            from_profile_id=from_profile_id,
            to_profile_id=to_profile_id,
            amount=amount,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_asset_changed(
        self,
        event_type: AuditEventType,
        asset_id: UUID,
        group_id: UUID,
        name: str,
        current_value: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.asset_changed(
            event_type=event_type,
            asset_id=asset_id,
            group_id=group_id,
            name=name,
            current_value=current_value,
            correlation_id=correlation_id,
        ))

    async def log_asset_depreciated(
        self,
        asset_id: UUID,
        group_id: UUID,
        previous_value: str,
        new_value: str,
        years_applied: int,
        mode: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log depreciation applied to an asset."""
        await self.log(AuditEventBuilder.asset_depreciated(
            asset_id=asset_id,
            group_id=group_id,
            previous_value=previous_value,
            new_value=new_value,
            years_applied=years_applied,
            mode=mode,
            correlation_id=correlation_id,
        ))

    async def log_depreciation_conflict(
        self,
        asset_id: UUID,
        group_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.depreciation_conflict(
            asset_id=asset_id,
            group_id=group_id,
            correlation_id=correlation_id,
        ))

    async def log_data_integrity_error(
        self,
        entity_type: str,
        entity_id: Optional[UUID],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.data_integrity_error(
            entity_type=entity_type,
            entity_id=entity_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., settling up).
    Pass it through all subsequent operations.
    """
    return uuid4()
