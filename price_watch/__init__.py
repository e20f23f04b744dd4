# price_watch/__init__.py
"""
Price Watch: async competitor price checker.

Load catalog + competitor links → fetch every price concurrently with
bounded retries → compare against the baseline column of the price
workbook → rewrite the workbook with undercuts in red → alert the operator.
"""

__all__ = [
    "config",
    "models",
    "scraping",
    "retry",
    "compare",
    "workbook",
    "notifier",
    "orchestrator",
]
