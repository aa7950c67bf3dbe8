"""
Flowcast - Forecast Runner
===========================

Forecast one product from a sales CSV and print the result with a reorder
suggestion.

Usage:
    python -m flowcast --sales data/sales.csv --product SKU-1 [--horizon 60]
"""

import argparse
import json
import sys

from flowcast.config import SettingsProvider
from flowcast.models.forecast import ForecastMethod
from flowcast.services.forecaster import get_forecast_for_horizon
from flowcast.services.providers import CsvSalesHistory
from flowcast.services.reorder import calc_suggestion, forecast_status
from flowcast.utils.constants import FORECAST_CONFIG, REORDER_CONFIG


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Forecast demand for a product')
    parser.add_argument('--sales', required=True, help='CSV with product_id, quantity, timestamp[, location_id]')
    parser.add_argument('--product', required=True, help='Product id to forecast')
    parser.add_argument('--location', default=None, help='Location id (default: all locations)')
    parser.add_argument('--horizon', type=int, default=30, choices=list(FORECAST_CONFIG["horizons"]))
    parser.add_argument('--method', default=None, choices=[m.value for m in ForecastMethod],
                        help='Forecast method (default from settings)')
    parser.add_argument('--on-hand', type=float, default=0, help='Units in stock')
    parser.add_argument('--safety-stock', type=float, default=0, help='Safety stock units')
    parser.add_argument('--lead-time', type=int, default=REORDER_CONFIG["default_lead_time_days"],
                        help='Supplier lead time in days')
    parser.add_argument('--reorder-qty', type=int, default=None, help='Minimum order quantity')
    return parser


def main(argv=None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    settings = SettingsProvider.from_env()

    try:
        history = CsvSalesHistory(args.sales)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    method = args.method or settings.forecast.default_method
    history_days = max(
        settings.forecast.min_history_days,
        args.horizon + FORECAST_CONFIG["history_padding_days"]
    )
    result = get_forecast_for_horizon(
        history.get_product_sales_history(args.product, args.location, days_back=history_days + 1),
        args.product,
        args.location,
        args.horizon,
        method,
        min_history_days=settings.forecast.min_history_days,
        alpha=settings.forecast.ewma_alpha,
    )
    suggestion = calc_suggestion(
        on_hand=args.on_hand,
        safety_stock=args.safety_stock,
        average_daily=result.average_daily,
        lead_time_days=args.lead_time,
        reorder_qty_floor=args.reorder_qty,
    )

    output = {
        "product_id": args.product,
        "location_id": args.location,
        "horizon": args.horizon,
        "requested_method": method,
        "forecast": {
            "method": result.method,
            "average_daily": result.average_daily,
            "peak_daily": result.peak_daily,
            "total_demand": result.total_demand,
            "data_points": result.data_points,
        },
        "suggestion": suggestion.to_dict(),
        "status": forecast_status(suggestion),
    }
    print(json.dumps(output, indent=2))
    return 0


if __name__ == '__main__':
    sys.exit(main())
