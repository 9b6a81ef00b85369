"""TOIL accrual, month-end processing and day-action reconciliation service."""
