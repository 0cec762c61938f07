"""
Tax profile schema (``splitbill_config.schema``).

Frozen dataclasses describing one parsed YAML tax profile. A profile
keeps its identity (id, version, checksum) next to the ``TaxConfig`` the
engines consume, so a calculation can be traced back to the exact file
that configured it.
"""

from __future__ import annotations

from dataclasses import dataclass

from splitbill_kernel.domain.tax_config import TaxConfig


@dataclass(frozen=True)
class TaxProfile:
    """One tax configuration profile loaded from ``sets/<profile_id>.yaml``."""

    profile_id: str
    version: int
    tax_config: TaxConfig
    description: str = ""
    jurisdiction: str = "MY"
    checksum: str = ""
