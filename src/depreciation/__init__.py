"""
Depreciation Package

Declining-balance depreciation of assets, as a pure engine plus the
service that persists it on read and on edit.
"""

from src.depreciation.engine import (
    DepreciationResult,
    recalculate_asset_value,
    recalculate_value,
    whole_years_between,
)
from src.depreciation.service import DepreciationService

__all__ = [
    "DepreciationResult",
    "DepreciationService",
    "recalculate_asset_value",
    "recalculate_value",
    "whole_years_between",
]
