"""Source adapters: stored files to record dicts. File I/O only."""

from splitbill_ingestion.adapters.json_adapter import JsonSessionSource

__all__ = ["JsonSessionSource"]
