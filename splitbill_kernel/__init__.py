"""
Split Bill Kernel

Pure domain core for the Malaysian bill-splitting application:
- Decimal-only monetary values paired with ISO 4217 currencies
- Session, participant and bill item value objects
- Malaysian tax configuration (SST, service charge)
- Typed exceptions and structured JSON logging
"""

__version__ = "0.1.0"
