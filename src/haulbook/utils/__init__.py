"""Utility functions for haulbook."""

from haulbook.utils.date_parser import parse_date, previous_month_range
from haulbook.utils.amount_parser import parse_amount, parse_amount_lenient
from haulbook.utils.driver_names import normalize_driver_name
from haulbook.utils.trip_ids import next_trip_id

__all__ = [
    "parse_date",
    "previous_month_range",
    "parse_amount",
    "parse_amount_lenient",
    "normalize_driver_name",
    "next_trip_id",
]
