"""
Depreciation Service

Applies the engine to stored assets.

CRITICAL: Reading assets triggers a write. The incremental write is
conditional on the last_depreciation_date we read, so two concurrent
readers can never apply the same elapsed years twice. The loser of the
race re-reads the stored asset, which already carries the new value.
"""

from datetime import date
from typing import Optional
from uuid import UUID

import structlog

from src.audit import AuditLogger
from src.errors import DataIntegrityError, NotFoundError
from src.models.audit import AuditEventType
from src.models.finance import Asset, DepreciationMode
from src.services.storage import AssetStorageInterface
from src.depreciation.engine import recalculate_value


logger = structlog.get_logger("group_budget.depreciation")


class DepreciationService:
    """Recalculates asset values and persists the result."""

    def __init__(
        self,
        storage: AssetStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()

    async def _recalculate(
        self,
        asset: Asset,
        as_of: date,
        mode: DepreciationMode,
        correlation_id: Optional[UUID],
    ):
        try:
            return recalculate_value(
                initial_value=asset.initial_value,
                purchase_date=asset.purchase_date,
                current_value=asset.current_value,
                last_depreciation_date=asset.last_depreciation_date,
                depreciation_rate=asset.depreciation_rate,
                as_of=as_of,
                mode=mode,
            )
        except DataIntegrityError as e:
            await self._audit.log_data_integrity_error(
                entity_type="asset",
                entity_id=asset.id,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

    async def apply_on_read(
        self,
        asset: Asset,
        as_of: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Asset:
        """
        Apply incremental depreciation to an asset that is being read.

        Returns the asset as it should be shown: unchanged when less than
        a whole year has elapsed, freshly depreciated otherwise, or the
        stored copy when another reader got there first.
        """
        as_of = as_of or date.today()
        result = await self._recalculate(
            asset, as_of, DepreciationMode.INCREMENTAL, correlation_id
        )
        if not result.changed:
            return asset

        written = await self._storage.update_asset_depreciation(
            asset_id=asset.id,
            current_value=result.current_value,
            last_depreciation_date=result.last_depreciation_date,
            expected_last_depreciation_date=asset.last_depreciation_date,
        )

        if not written:
            await self._audit.log_depreciation_conflict(
                asset_id=asset.id,
                group_id=asset.group_id,
                correlation_id=correlation_id,
            )
            stored = await self._storage.get_asset(asset.id)
            if stored is None:
                raise NotFoundError(f"Asset not found: {asset.id}")
            return stored

        await self._audit.log_asset_depreciated(
            asset_id=asset.id,
            group_id=asset.group_id,
            previous_value=str(asset.current_value),
            new_value=str(result.current_value),
            years_applied=result.years_applied,
            mode=DepreciationMode.INCREMENTAL.value,
            correlation_id=correlation_id,
        )
        return asset.model_copy(update={
            "current_value": result.current_value,
            "last_depreciation_date": result.last_depreciation_date,
        })

    async def apply_full(
        self,
        asset: Asset,
        as_of: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Asset:
        """
        Recalculate from scratch and store the asset.

        Called after an explicit edit, so the whole record is written.
        """
        as_of = as_of or date.today()
        result = await self._recalculate(
            asset, as_of, DepreciationMode.FULL, correlation_id
        )
        updated = asset.model_copy(update={
            "current_value": result.current_value,
            "last_depreciation_date": result.last_depreciation_date,
        })
        await self._storage.update_asset(updated)

        logger.debug(
            "asset_recalculated",
            asset_id=str(asset.id),
            years=result.years_applied,
            value=str(result.current_value),
        )
        await self._audit.log_asset_changed(
            event_type=AuditEventType.ASSET_UPDATED,
            asset_id=updated.id,
            group_id=updated.group_id,
            name=updated.name,
            current_value=str(updated.current_value),
            correlation_id=correlation_id,
        )
        return updated
