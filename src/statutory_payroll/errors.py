"""Exception types raised by the statutory payroll engine."""

from __future__ import annotations


class StatutoryPayrollError(Exception):
    """Base class for all engine errors."""


class InvalidRuleSetError(StatutoryPayrollError):
    """Raised when a rule set violates one or more invariants.

    Always raised before any state change; ``errors`` lists every problem
    found, not just the first.
    """

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("Invalid rule set: " + "; ".join(self.errors))


class ConcurrentModificationError(StatutoryPayrollError):
    """Raised when a rule edit was based on a version that is no longer current."""

    def __init__(
        self,
        organization_id: str,
        expected_version: int,
        actual_version: int | None,
    ):
        self.organization_id = organization_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Rule set for organization '{organization_id}' was modified concurrently: "
            f"expected version {expected_version}, found {actual_version}. "
            "Reload the current version and retry."
        )


class RuleSetNotFoundError(StatutoryPayrollError):
    """Raised when no rule set exists and none could be created."""

    def __init__(self, organization_id: str, detail: str | None = None):
        self.organization_id = organization_id
        self.detail = detail
        msg = f"No statutory rule set available for organization '{organization_id}'"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class InvalidInputError(StatutoryPayrollError, ValueError):
    """Raised for out-of-contract calculation inputs (e.g. negative gross pay)."""
