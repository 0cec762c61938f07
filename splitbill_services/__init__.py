"""
splitbill_services -- orchestration over engines, kernel and config.

The calculation service is the single place where a loaded session meets
a tax configuration; the engines below it stay pure.
"""

from splitbill_services.session_calculation_service import (
    SessionCalculationOutcome,
    SessionCalculationService,
)

__all__ = ["SessionCalculationOutcome", "SessionCalculationService"]
