"""Statutory payroll engine: versioned Kenyan statutory rules and deduction calculation."""

__version__ = "1.0.0"
