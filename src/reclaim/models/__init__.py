"""Reclaim data models."""

from reclaim.models.rule import Action, Rule, RuleType
from reclaim.models.report import ItemReport, Report, Status, Summary, SummaryBucket

__all__ = [
    "Action",
    "ItemReport",
    "Report",
    "Rule",
    "RuleType",
    "Status",
    "Summary",
    "SummaryBucket",
]
