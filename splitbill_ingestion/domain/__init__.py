"""Pure ingestion domain: field parsers and the session normalizer. ZERO I/O."""

from splitbill_ingestion.domain.normalizer import SessionNormalizer
from splitbill_ingestion.domain.validators import (
    parse_flag,
    parse_id_list,
    parse_money,
    parse_optional_money,
    parse_timestamp,
    require_text,
)

__all__ = [
    "SessionNormalizer",
    "parse_flag",
    "parse_id_list",
    "parse_money",
    "parse_optional_money",
    "parse_timestamp",
    "require_text",
]
