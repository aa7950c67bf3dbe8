"""
Data Validation Utilities
==========================
Validation of raw sales records before they reach the forecast engine.

Design Principles:
- Never silently fail - always log issues
- Malformed rows are dropped, the rest of the batch is kept
- Return structured validation results
"""

import pandas as pd
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from dataclasses import dataclass, field

from flowcast.errors import DataError
from flowcast.utils.logger import get_logger
from flowcast.utils.constants import SALES_RECORD_SCHEMA

logger = get_logger(__name__)


@dataclass
class ValidationResult:
    """
    Structured result of a validation operation.

    Attributes
    ----------
    is_valid : bool
        Overall validation status
    errors : List[str]
        Critical issues that prevent processing
    warnings : List[str]
        Non-critical issues (skipped rows and similar)
    info : Dict[str, Any]
        Additional validation metadata
    """
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    info: Dict[str, Any] = field(default_factory=dict)

    def add_error(self, message: str) -> None:
        """Add an error and mark as invalid."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning (doesn't affect validity)."""
        self.warnings.append(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "is_valid": self.is_valid,
            "errors": self.errors,
            "warnings": self.warnings,
            "info": self.info
        }


def records_to_frame(records: Iterable[Any], schema: Optional[Dict] = None) -> pd.DataFrame:
    """
    Build a DataFrame from sales records.

    Accepts SalesRecord objects, mappings, or an existing DataFrame. Missing
    optional columns are added as empty.
    """
    if isinstance(records, pd.DataFrame):
        df = records.copy()
    else:
        rows = []
        for record in records:
            if isinstance(record, Mapping):
                rows.append(dict(record))
            elif hasattr(record, "to_dict"):
                rows.append(record.to_dict())
            else:
                rows.append({"_raw": record})
        df = pd.DataFrame(rows)

    schema = schema or SALES_RECORD_SCHEMA
    for col in schema["required_columns"] + schema["optional_columns"]:
        if col not in df.columns:
            df[col] = None
    return df


class SalesRecordValidator:
    """
    Cleans raw sales records, dropping rows that would corrupt a daily series.

    A row is a data error when its product id is missing, its timestamp
    cannot be parsed, or its quantity is not a non-negative number.

    Usage
    -----
    validator = SalesRecordValidator()
    clean_df, result = validator.clean(records)
    """

    def __init__(self, schema: Optional[Dict] = None):
        self.schema = schema or SALES_RECORD_SCHEMA

    def clean(self, records: Iterable[Any]) -> Tuple[pd.DataFrame, ValidationResult]:
        """
        Validate and normalise sales records.

        Returns
        -------
        Tuple[pd.DataFrame, ValidationResult]
            Frame with columns product_id, location_id (None when absent),
            quantity (int) and timestamp (naive datetime), plus the result
            describing how many rows were dropped.
        """
        result = ValidationResult()
        df = records_to_frame(records, self.schema)
        result.info["row_count"] = len(df)

        if len(df) == 0:
            result.info["kept_count"] = 0
            return self._empty_frame(), result

        product = df["product_id"]
        quantity = pd.to_numeric(df["quantity"], errors="coerce")
        timestamp = pd.to_datetime(df["timestamp"], errors="coerce", utc=True)

        bad_product = product.isna() | (product.astype(str).str.strip() == "")
        bad_quantity = quantity.isna() | (quantity < 0)
        bad_timestamp = timestamp.isna()
        bad = bad_product | bad_quantity | bad_timestamp

        for label, mask in (
            ("missing product_id", bad_product),
            ("invalid quantity", bad_quantity),
            ("unparsable timestamp", bad_timestamp),
        ):
            count = int(mask.sum())
            if count:
                result.add_warning(f"Skipped {count} sales record(s) with {label}")

        dropped = int(bad.sum())
        result.info["dropped_count"] = dropped
        result.info["kept_count"] = len(df) - dropped

        for warning in result.warnings:
            logger.warning(warning)

        location = df["location_id"].map(
            lambda v: None if pd.isna(v) or str(v).strip() == "" else str(v)
        ).astype(object)
        clean = pd.DataFrame({
            "product_id": product.astype(str),
            "location_id": location,
            "quantity": quantity.fillna(0).round().astype(int),
            "timestamp": timestamp.dt.tz_localize(None),
        })[~bad].reset_index(drop=True)

        return clean, result

    def check_record(self, record: Mapping) -> None:
        """
        Raise DataError if a single record is malformed.

        Used by InMemorySalesHistory.add_record for single events.
        """
        if not isinstance(record, Mapping) and hasattr(record, "to_dict"):
            record = record.to_dict()
        _, result = self.clean([record])
        if result.info.get("dropped_count"):
            raise DataError("; ".join(result.warnings), record=record)

    @staticmethod
    def _empty_frame() -> pd.DataFrame:
        return pd.DataFrame({
            "product_id": pd.Series(dtype=object),
            "location_id": pd.Series(dtype=object),
            "quantity": pd.Series(dtype=int),
            "timestamp": pd.Series(dtype="datetime64[ns]"),
        })
