"""Sensitivity analysis: pattern vocabulary, classifier and report models.

Usage:
    from secure_migrator.analysis import classify, summarize
"""

from secure_migrator.analysis.classifier import classify, level_for, summarize
from secure_migrator.analysis.models import (
    AnalysisSummary,
    SensitiveFieldReport,
    SensitivityLevel,
)

__all__ = [
    "classify",
    "summarize",
    "level_for",
    "AnalysisSummary",
    "SensitiveFieldReport",
    "SensitivityLevel",
]
