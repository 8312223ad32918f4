"""ORM models."""

from statutory_payroll.models.base import Base, TimestampMixin
from statutory_payroll.models.rules import StatutoryRulePointer, StatutoryRuleSetRecord

__all__ = [
    "Base",
    "TimestampMixin",
    "StatutoryRulePointer",
    "StatutoryRuleSetRecord",
]
