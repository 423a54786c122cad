"""
Audit Models for Group Budget

Every mutation and every settlement computation is logged for audit purposes.
This provides:
1. Complete traceability of who settled what with whom
2. Debugging information when balances look wrong
3. A record of depreciation applied as a side effect of reads
4. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Groups & profiles
    GROUP_CREATED = "group_created"
    GROUP_UPDATED = "group_updated"
    GROUP_DELETED = "group_deleted"
    PROFILE_ADDED = "profile_added"
    PROFILE_DELETED = "profile_deleted"

    # Ledger
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Budgets
    BUDGETS_REPLACED = "budgets_replaced"

    # Expense splitting
    BALANCES_COMPUTED = "balances_computed"
    SETTLEMENTS_PLANNED = "settlements_planned"
    SETTLEMENT_RECORDED = "settlement_recorded"
    SETTLEMENT_FAILED = "settlement_failed"

    # Assets
    ASSET_CREATED = "asset_created"
    ASSET_UPDATED = "asset_updated"
    ASSET_DELETED = "asset_deleted"
    ASSET_DEPRECIATED = "asset_depreciated"
    DEPRECIATION_CONFLICT = "depreciation_conflict"

    # System events
    DATA_INTEGRITY_ERROR = "data_integrity_error"
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'group', 'transaction', 'asset')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    group_id: Optional[UUID] = Field(
        default=None,
        description="Group the event belongs to, if any"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one settle-up action)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "group_id": str(self.group_id) if self.group_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         group_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.group_id) if self.group_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.settlement_recorded(...)
        event = AuditEventBuilder.asset_depreciated(...)
    """

    @staticmethod
    def group_created(
        group_id: UUID,
        name: str,
        profile_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_CREATED,
            entity_type="group",
            entity_id=group_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Group created: {name}",
            details={"profile_count": profile_count},
            is_user_action=True,
        )

    @staticmethod
    def group_deleted(
        group_id: UUID,
        removed_transactions: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="group",
            entity_id=group_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description="Group deleted with all its data",
            details={"removed_transactions": removed_transactions},
            is_user_action=True,
        )

    @staticmethod
    def profile_added(
        group_id: UUID,
        profile_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_ADDED,
            entity_type="profile",
            entity_id=profile_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Profile added: {name}",
            is_user_action=True,
        )

    @staticmethod
    def profile_deleted(
        group_id: UUID,
        profile_id: UUID,
        removed_transactions: int,
        removed_budgets: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="profile",
            entity_id=profile_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description="Profile deleted with its transactions and budgets",
            details={
                "removed_transactions": removed_transactions,
                "removed_budgets": removed_budgets,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_changed(
        event_type: AuditEventType,
        transaction_id: UUID,
        group_id: UUID,
        kind: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        verb = event_type.value.split("_")[-1]
        return AuditEvent(
            event_type=event_type,
            entity_type="transaction",
            entity_id=transaction_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Transaction {verb}: {kind} {amount}",
            details={"kind": kind, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def budgets_replaced(
        group_id: UUID,
        profile_id: UUID,
        categories: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGETS_REPLACED,
            entity_type="profile",
            entity_id=profile_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Budgets replaced ({len(categories)} categories)",
            details={"categories": categories},
            is_user_action=True,
        )

    @staticmethod
    def balances_computed(
        group_id: UUID,
        total_expense: Decimal,
        profile_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCES_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="group",
            entity_id=group_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Balances computed for {profile_count} profiles",
            details={"total_expense": str(total_expense)},
        )

    @staticmethod
    def settlements_planned(
        group_id: UUID,
        settlement_count: int,
        total_amount: Decimal,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENTS_PLANNED,
            severity=AuditSeverity.DEBUG,
            entity_type="group",
            entity_id=group_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"{settlement_count} settlements proposed",
            details={"total_amount": str(total_amount)},
        )

    @staticmethod
    def settlement_recorded(
        group_id: UUID,
        paid_transaction_id: UUID,
        received_transaction_id: UUID,
        from_name: str,
        to_name: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_RECORDED,
            entity_type="transaction",
            entity_id=paid_transaction_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Settlement recorded: {from_name} paid {to_name} {amount}",
            details={
                "paid_transaction_id": str(paid_transaction_id),
                "received_transaction_id": str(received_transaction_id),
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def settlement_failed(
        group_id: UUID,
        from_profile_id: UUID,
        to_profile_id: UUID,
        amount: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="group",
            entity_id=group_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description="Settlement could not be recorded and was rolled back",
            details={
                "from_profile_id": str(from_profile_id),
                "to_profile_id": str(to_profile_id),
                "amount": amount,
            },
            error_message=error_message,
        )

    @staticmethod
    def asset_changed(
        event_type: AuditEventType,
        asset_id: UUID,
        group_id: UUID,
        name: str,
        current_value: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="asset",
            entity_id=asset_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Asset {event_type.value.split('_')[-1]}: {name}",
            details={"current_value": current_value},
            is_user_action=True,
        )

    @staticmethod
    def asset_depreciated(
        asset_id: UUID,
        group_id: UUID,
        previous_value: str,
        new_value: str,
        years_applied: int,
        mode: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSET_DEPRECIATED,
            entity_type="asset",
            entity_id=asset_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Depreciation applied for {years_applied} year(s)",
            details={
                "previous_value": previous_value,
                "new_value": new_value,
                "years_applied": years_applied,
                "mode": mode,
            },
        )

    @staticmethod
    def depreciation_conflict(
        asset_id: UUID,
        group_id: UUID,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEPRECIATION_CONFLICT,
            severity=AuditSeverity.WARNING,
            entity_type="asset",
            entity_id=asset_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description="Asset was depreciated concurrently; kept the stored value",
        )

    @staticmethod
    def data_integrity_error(
        entity_type: str,
        entity_id: Optional[UUID],
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_INTEGRITY_ERROR,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Malformed {entity_type} data",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        event_type = (
            AuditEventType.STORAGE_ERROR if error_type == "storage"
            else AuditEventType.SYSTEM_ERROR
        )
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
