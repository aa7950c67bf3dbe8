"""
Utils Package
=============
Utility functions for the forecast core.

Modules:
- logger: Centralized logging configuration
- validators: Sales record validation utilities
- constants: System-wide constants and configurations
"""

from flowcast.utils.logger import get_logger, LogContext
from flowcast.utils.validators import SalesRecordValidator, ValidationResult
from flowcast.utils.constants import (
    SALES_RECORD_SCHEMA,
    FORECAST_CONFIG,
    REORDER_CONFIG,
    CACHE_CONFIG,
    SCHEDULER_CONFIG,
)

__all__ = [
    'get_logger',
    'LogContext',
    'SalesRecordValidator',
    'ValidationResult',
    'SALES_RECORD_SCHEMA',
    'FORECAST_CONFIG',
    'REORDER_CONFIG',
    'CACHE_CONFIG',
    'SCHEDULER_CONFIG',
]
