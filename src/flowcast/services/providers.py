"""
Collaborator Providers
=======================
Sales history and inventory state sources consumed by the forecast core.

The host application normally supplies its own implementations backed by
its database; the in-memory and CSV versions here cover tests, the CLI and
bulk imports.

Usage:
    history = CsvSalesHistory("data/sales.csv")
    records = history.get_product_sales_history("SKU-1", days_back=60)
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from flowcast.models.forecast import InventoryState, SalesRecord
from flowcast.utils.constants import REORDER_CONFIG
from flowcast.utils.logger import get_logger, log_sales_frame_info, LogContext
from flowcast.utils.validators import SalesRecordValidator, ValidationResult

logger = get_logger(__name__)


# =============================================================================
# SALES HISTORY
# =============================================================================

class SalesHistoryProvider(ABC):
    """Source of raw sales events."""

    @abstractmethod
    def get_sales(self, start: datetime, end: datetime) -> List[SalesRecord]:
        """Return all sales with start <= timestamp <= end."""

    def get_product_sales_history(
        self,
        product_id: str,
        location_id: Optional[str] = None,
        days_back: int = 90
    ) -> List[SalesRecord]:
        """Sales of one product (optionally one location) over the last `days_back` days."""
        end = datetime.now()
        records = self.get_sales(end - timedelta(days=days_back), end)
        return [
            record for record in records
            if record.product_id == str(product_id)
            and (not location_id or record.location_id == str(location_id))
        ]


class InMemorySalesHistory(SalesHistoryProvider):
    """
    Sales history held in a DataFrame.

    Malformed records are dropped on the way in (see SalesRecordValidator);
    the outcome is kept on ``validation``.
    """

    def __init__(self, records: Iterable[Any] = ()):
        self._validator = SalesRecordValidator()
        self._frame, self.validation = self._validator.clean(records)

    def add_records(self, records: Iterable[Any]) -> ValidationResult:
        """Append records (e.g. after a bulk import). Returns the validation result."""
        frame, result = self._validator.clean(records)
        if len(frame):
            self._frame = pd.concat([self._frame, frame], ignore_index=True)
        return result

    def add_record(self, record: Any) -> None:
        """Append one sales event. Raises DataError if it is malformed."""
        self._validator.check_record(record)
        self.add_records([record])

    def get_sales(self, start: datetime, end: datetime) -> List[SalesRecord]:
        window = self._frame[
            (self._frame["timestamp"] >= pd.Timestamp(start))
            & (self._frame["timestamp"] <= pd.Timestamp(end))
        ]
        return [
            SalesRecord(
                product_id=row.product_id,
                quantity=int(row.quantity),
                timestamp=row.timestamp.to_pydatetime(),
                location_id=row.location_id,
            )
            for row in window.itertuples(index=False)
        ]

    def __len__(self) -> int:
        return len(self._frame)


class CsvSalesHistory(InMemorySalesHistory):
    """
    Sales history loaded from a CSV file.

    Expected columns: product_id, quantity, timestamp and optionally
    location_id. Timestamps may be ISO strings or anything pandas parses.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Sales file not found: {self.path}")

        with LogContext(logger, f"Loading sales history from {self.path.name}"):
            try:
                raw = pd.read_csv(self.path, dtype={"product_id": str, "location_id": str}, encoding='utf-8')
            except UnicodeDecodeError:
                raw = pd.read_csv(self.path, dtype={"product_id": str, "location_id": str}, encoding='latin-1')
                logger.warning(f"Used latin-1 encoding for {self.path.name}")

            super().__init__(raw)
            log_sales_frame_info(logger, self.path.name, self._frame)

        if self.validation.info.get("dropped_count"):
            logger.warning(
                f"{self.validation.info['dropped_count']} of {self.validation.info['row_count']} "
                f"rows in {self.path.name} were skipped"
            )


# =============================================================================
# INVENTORY STATE
# =============================================================================

class InventoryStateProvider(ABC):
    """Source of current stock positions."""

    @abstractmethod
    def get_state(self, product_id: str, location_id: Optional[str] = None) -> InventoryState:
        """Stock position at a location, or aggregated over all locations when None."""


class InMemoryInventory(InventoryStateProvider):
    """
    Inventory positions keyed by (product, location).

    Aggregation over all locations: on-hand quantities are summed; safety
    stock, reorder quantity and lead time take the largest location value.
    Unknown products report zero stock with the default lead time.
    """

    def __init__(self, states: Iterable[InventoryState] = ()):
        self._states: Dict[Tuple[str, Optional[str]], InventoryState] = {}
        for state in states:
            self.set_state(state)

    def set_state(self, state: InventoryState) -> None:
        self._states[(str(state.product_id), state.location_id)] = state

    def get_state(self, product_id: str, location_id: Optional[str] = None) -> InventoryState:
        product_id = str(product_id)
        default_lead = REORDER_CONFIG["default_lead_time_days"]

        if location_id:
            return self._states.get(
                (product_id, location_id),
                InventoryState(product_id, location_id, lead_time_days=default_lead)
            )

        states = [s for (pid, _), s in self._states.items() if pid == product_id]
        if not states:
            return InventoryState(product_id, None, lead_time_days=default_lead)

        return InventoryState(
            product_id=product_id,
            location_id=None,
            on_hand=sum(s.on_hand for s in states),
            safety_stock=max(s.safety_stock for s in states),
            reorder_point=max(s.reorder_point for s in states),
            reorder_qty=max(s.reorder_qty for s in states),
            lead_time_days=max(s.lead_time_days for s in states),
        )
