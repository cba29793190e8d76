"""Pydantic models for sensitivity analysis results."""

from enum import StrEnum

from pydantic import BaseModel, Field


class SensitivityLevel(StrEnum):
    """Sensitivity bucket derived from a score."""

    CRITICAL = "critical"  # >= 90
    HIGH = "high"  # 70-89
    MEDIUM = "medium"  # 50-69
    LOW = "low"  # 30-49
    NONE = "none"  # < 30


class SensitiveFieldReport(BaseModel):
    """Sensitivity score and rationale for one column.

    Derived on demand from the current snapshot; never persisted on its own.

    Example:
        >>> report = SensitiveFieldReport(
        ...     table="users", column="email", data_type="varchar",
        ...     score=85, reasons=["Email address"],
        ...     recommendation="High obfuscation: apply masking or tokenization",
        ...     level=SensitivityLevel.HIGH,
        ... )
        >>> report.level
        <SensitivityLevel.HIGH: 'high'>
    """

    table: str
    column: str
    data_type: str
    score: int = Field(ge=0, le=100)
    reasons: list[str] = Field(default_factory=list)
    recommendation: str
    level: SensitivityLevel


class AnalysisSummary(BaseModel):
    """Counts per sensitivity band plus the reports sorted by score.

    ``moderate_count`` covers scores 70-89, ``low_count`` 50-69 and
    ``safe_count`` everything under 50.
    """

    critical_count: int = 0
    moderate_count: int = 0
    low_count: int = 0
    safe_count: int = 0
    fields: list[SensitiveFieldReport] = Field(default_factory=list)

    def format_report(self) -> str:
        """Format the summary as a human-readable report."""
        lines = [
            f"Sensitive fields: {self.critical_count} critical, "
            f"{self.moderate_count} moderate, {self.low_count} low, "
            f"{self.safe_count} safe"
        ]
        for field in self.fields:
            if field.level is SensitivityLevel.NONE:
                continue
            lines.append(
                f"  - {field.table}.{field.column} ({field.score}): "
                f"{field.recommendation}"
            )
        return "\n".join(lines)
