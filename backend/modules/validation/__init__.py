"""
modules/validation package — data quality guards before a place enters a plan.
"""
from modules.validation.place_validator import (
    ValidationResult,
    place_record,
    validate_place,
    validate_day_dates,
    filter_valid,
)

__all__ = [
    "ValidationResult",
    "place_record",
    "validate_place",
    "validate_day_dates",
    "filter_valid",
]
