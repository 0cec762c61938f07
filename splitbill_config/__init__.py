"""
splitbill_config -- single public entrypoint for tax configuration.

Responsibility:
    Provides the ONLY way to obtain a ``TaxConfig`` from configuration
    files through ``get_tax_config()``. Engines never read files; they
    receive the frozen ``TaxConfig`` this package produces.

Architecture position:
    Configuration -- sits above ``splitbill_kernel`` and below
    ``splitbill_services``. The kernel and engines MUST NEVER import
    from ``splitbill_config``.

Invariants enforced:
    - Single entrypoint: file-based tax config flows through
      ``get_tax_config()`` / ``get_tax_profile()``.
    - Deterministic identity: the same YAML profile always produces the
      same checksum.

Failure modes:
    - ``FileNotFoundError`` -- no profile with the requested name.
    - ``InvalidTaxConfigError`` (a ``ValueError``) -- malformed profile.

Audit relevance:
    Every successful load emits a ``SPLITBILL_CONFIG_TRACE`` log entry
    with the profile id, version, checksum and the active tax terms.
"""

from __future__ import annotations

from pathlib import Path

from splitbill_config.loader import load_yaml_file, parse_profile
from splitbill_config.schema import TaxProfile
from splitbill_kernel.domain.tax_config import TaxConfig
from splitbill_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default profiles directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DEFAULT_PROFILE = "malaysia"


def get_tax_profile(
    profile: str = DEFAULT_PROFILE,
    config_dir: Path | None = None,
) -> TaxProfile:
    """
    Load, validate and trace one tax profile.

    Args:
        profile: Profile name, the YAML file stem under ``config_dir``.
        config_dir: Override path to the profiles directory.
            Defaults to splitbill_config/sets/.

    Raises:
        FileNotFoundError: If the profile file does not exist.
        InvalidTaxConfigError: If the profile is malformed.
    """
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{profile}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Tax profile not found: {profile} (looked in {sets_dir})")

    loaded = parse_profile(load_yaml_file(path), profile)
    config = loaded.tax_config

    _logger.info(
        "SPLITBILL_CONFIG_TRACE",
        extra={
            "trace_type": "SPLITBILL_CONFIG_TRACE",
            "profile_id": loaded.profile_id,
            "profile_version": loaded.version,
            "checksum": loaded.checksum,
            "jurisdiction": loaded.jurisdiction,
            "currency": config.currency,
            "sst_enabled": config.sst_enabled,
            "sst_rate": str(config.sst_rate),
            "service_charge_enabled": config.service_charge_enabled,
            "service_charge_rate": str(config.service_charge_rate),
            "service_charge_scope": config.service_charge_scope.value,
        },
    )
    return loaded


def get_tax_config(
    profile: str = DEFAULT_PROFILE,
    config_dir: Path | None = None,
) -> TaxConfig:
    """The frozen ``TaxConfig`` of a profile. See ``get_tax_profile``."""
    return get_tax_profile(profile, config_dir).tax_config


def available_profiles(config_dir: Path | None = None) -> tuple[str, ...]:
    """Sorted names of the profiles in ``config_dir``."""
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    if not sets_dir.is_dir():
        raise FileNotFoundError(f"Tax profiles directory not found: {sets_dir}")
    return tuple(sorted(p.stem for p in sets_dir.glob("*.yaml")))


__all__ = [
    "DEFAULT_PROFILE",
    "TaxProfile",
    "available_profiles",
    "get_tax_config",
    "get_tax_profile",
]
