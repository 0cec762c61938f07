"""
Tax Profile Loader (``splitbill_config.loader``).

Responsibility
--------------
Loads a YAML tax profile and parses it into a ``TaxProfile``. Callers
outside this package use ``splitbill_config.get_tax_config()`` instead.

Invariants enforced
-------------------
* Rates are parsed through ``str`` into ``Decimal``; YAML floats never
  reach arithmetic.
* Unknown keys are rejected so a misspelt switch cannot silently fall
  back to a default.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed profile for identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad keys, rates or flags  -> ``InvalidTaxConfigError`` (a ``ValueError``).
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from splitbill_config.schema import TaxProfile
from splitbill_kernel.domain.tax_config import (
    DEFAULT_SERVICE_CHARGE_RATE,
    DEFAULT_SST_RATE,
    ServiceChargeScope,
    TaxConfig,
)
from splitbill_kernel.domain.values import DEFAULT_CURRENCY
from splitbill_kernel.exceptions import InvalidTaxConfigError

_TOP_LEVEL_KEYS = frozenset({
    "profile_id",
    "version",
    "description",
    "jurisdiction",
    "currency",
    "sst",
    "service_charge",
})
_SST_KEYS = frozenset({"enabled", "rate"})
_SERVICE_CHARGE_KEYS = frozenset({"enabled", "rate", "scope"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_rate(value: Any, field: str, profile: str) -> Decimal:
    """Parse a rate in [0, 1]; booleans and non-numeric strings are rejected."""
    if isinstance(value, bool) or value is None:
        raise InvalidTaxConfigError(profile, f"{field} must be a number, got {value!r}")
    try:
        rate = Decimal(str(value))
    except InvalidOperation as e:
        raise InvalidTaxConfigError(profile, f"{field} is not a number: {value!r}") from e
    if not rate.is_finite() or rate < 0 or rate > 1:
        raise InvalidTaxConfigError(profile, f"{field} must be between 0 and 1, got {value!r}")
    return rate


def parse_flag(value: Any, field: str, profile: str) -> bool:
    if not isinstance(value, bool):
        raise InvalidTaxConfigError(profile, f"{field} must be true or false, got {value!r}")
    return value


def _section(data: dict[str, Any], key: str, allowed: frozenset[str], profile: str) -> dict[str, Any]:
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise InvalidTaxConfigError(profile, f"{key} must be a mapping")
    unknown = sorted(set(section) - allowed)
    if unknown:
        raise InvalidTaxConfigError(profile, f"unknown keys in {key}: {', '.join(unknown)}")
    return section


def parse_profile(data: dict[str, Any], profile: str) -> TaxProfile:
    """
    Parse a ``TaxProfile`` from a loaded YAML mapping.

    Missing sections fall back to the Malaysian defaults (6% SST, 10%
    service charge shared by all participants).
    """
    if not isinstance(data, dict):
        raise InvalidTaxConfigError(profile, "profile must be a mapping")
    unknown = sorted(set(data) - _TOP_LEVEL_KEYS)
    if unknown:
        raise InvalidTaxConfigError(profile, f"unknown keys: {', '.join(unknown)}")

    profile_id = data.get("profile_id", profile)
    if profile_id != profile:
        raise InvalidTaxConfigError(
            profile, f"profile_id {profile_id!r} does not match file name"
        )

    sst = _section(data, "sst", _SST_KEYS, profile)
    service_charge = _section(data, "service_charge", _SERVICE_CHARGE_KEYS, profile)

    scope_value = service_charge.get("scope", ServiceChargeScope.ALL_PARTICIPANTS.value)
    try:
        scope = ServiceChargeScope(scope_value)
    except ValueError as e:
        raise InvalidTaxConfigError(
            profile, f"service_charge.scope must be one of "
            f"{[s.value for s in ServiceChargeScope]}, got {scope_value!r}"
        ) from e

    version = data.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int):
        raise InvalidTaxConfigError(profile, f"version must be an integer, got {version!r}")

    try:
        tax_config = TaxConfig(
            sst_rate=parse_rate(sst.get("rate", DEFAULT_SST_RATE), "sst.rate", profile),
            service_charge_rate=parse_rate(
                service_charge.get("rate", DEFAULT_SERVICE_CHARGE_RATE),
                "service_charge.rate",
                profile,
            ),
            service_charge_scope=scope,
            sst_enabled=parse_flag(sst.get("enabled", True), "sst.enabled", profile),
            service_charge_enabled=parse_flag(
                service_charge.get("enabled", True), "service_charge.enabled", profile
            ),
            currency=str(data.get("currency", DEFAULT_CURRENCY)),
        )
    except InvalidTaxConfigError:
        raise
    except ValueError as e:
        raise InvalidTaxConfigError(profile, str(e)) from e

    parsed = TaxProfile(
        profile_id=profile,
        version=version,
        tax_config=tax_config,
        description=str(data.get("description", "")),
        jurisdiction=str(data.get("jurisdiction", "MY")),
    )
    return replace(parsed, checksum=compute_checksum(profile_to_dict(parsed)))


def profile_to_dict(profile: TaxProfile) -> dict[str, Any]:
    """Canonical dict of a profile, excluding its checksum."""
    return {
        "profile_id": profile.profile_id,
        "version": profile.version,
        "description": profile.description,
        "jurisdiction": profile.jurisdiction,
        "tax": profile.tax_config.as_dict(),
    }


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
