"""Utility functions for budgetwatch."""

from budgetwatch.utils.date_parser import parse_date, parse_month
from budgetwatch.utils.amount_parser import parse_amount

__all__ = ["parse_date", "parse_month", "parse_amount"]
