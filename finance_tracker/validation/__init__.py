"""Form validation."""

from finance_tracker.validation.validator import FormValidator, parse_amount

__all__ = ["FormValidator", "parse_amount"]
