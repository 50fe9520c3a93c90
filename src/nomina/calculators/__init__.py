"""Payroll calculation: rule resolution and payslip calculation."""

from nomina.calculators.line_builder import LineItemBuilder
from nomina.calculators.payslip import PayslipCalculator
from nomina.calculators.rules_registry import CountryRulesRegistry
from nomina.calculators.types import ItemCandidate, ItemType, PayslipResult, RuleSet

__all__ = [
    "CountryRulesRegistry",
    "ItemCandidate",
    "ItemType",
    "LineItemBuilder",
    "PayslipCalculator",
    "PayslipResult",
    "RuleSet",
]
