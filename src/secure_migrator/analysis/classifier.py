"""Heuristic sensitivity classifier.

Pure logic -- no I/O.  Each column of a ``SchemaSnapshot`` is scored by
additive fixed-weight rules evaluated in a fixed order:

1. Column-name rules (identifiers, email, card, phone, address, names,
   credentials, financial, medical, location).
2. Sample-content rules over at most ``SAMPLE_SIZE`` sampled rows, only for
   text-typed columns.
3. Free-text amplification for unbounded text columns that already matched.

The final score is ``min(100, sum_of_weights)``.  Identical snapshots always
yield identical reports.

Usage:
    from secure_migrator.analysis.classifier import classify, summarize

    reports = classify(snapshot)
    summary = summarize(reports)
    print(summary.format_report())
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from secure_migrator.analysis import patterns
from secure_migrator.analysis.models import (
    AnalysisSummary,
    SensitiveFieldReport,
    SensitivityLevel,
)
from secure_migrator.schema.models import ColumnDescriptor, SchemaSnapshot

SAMPLE_SIZE = 5
FREE_TEXT_WEIGHT = 10

# (minimum score, level, recommendation), highest first
THRESHOLDS: list[tuple[int, SensitivityLevel, str]] = [
    (90, SensitivityLevel.CRITICAL, "Critical obfuscation: apply hash or deletion"),
    (70, SensitivityLevel.HIGH, "High obfuscation: apply masking or tokenization"),
    (50, SensitivityLevel.MEDIUM, "Medium obfuscation: apply generalization or replacement"),
    (30, SensitivityLevel.LOW, "Low obfuscation: review manually"),
]
NO_ACTION = "No obfuscation required"


@dataclass(frozen=True)
class NameRule:
    """Column-name rule.

    Matches when the normalized column name contains one of ``terms`` as a
    token, contains one of ``fragments`` as a substring, or matches
    ``value_pattern``; unless it contains one of ``excludes``.
    """

    reason: str
    weight: int
    terms: tuple[str, ...] = ()
    fragments: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()
    value_pattern: re.Pattern[str] | None = None
    _term_re: re.Pattern[str] | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.terms:
            object.__setattr__(self, "_term_re", patterns.term_pattern(*self.terms))

    def matches(self, name: str) -> bool:
        if any(x in name for x in self.excludes):
            return False
        if self._term_re is not None and self._term_re.search(name):
            return True
        if any(f in name for f in self.fragments):
            return True
        return self.value_pattern is not None and bool(self.value_pattern.search(name))


@dataclass(frozen=True)
class ContentRule:
    """Sample-content rule: fires when ``min_hits`` sampled values match."""

    reason: str
    weight: int
    predicate: Callable[[str], bool]
    min_hits: int = 1


NAME_RULES: list[NameRule] = [
    NameRule(
        "National identifier or identity document",
        90,
        terms=("dni", "rut", "ssn", "nif", "curp"),
        fragments=(
            "cedula", "passport", "pasaporte", "personal_id", "id_personal",
            "nacional", "national_id", "tax_id", "social_security",
        ),
    ),
    NameRule("Possible personal identifier", 90, value_pattern=patterns.PERSONAL_ID),
    NameRule(
        "Email address",
        70,
        fragments=("email", "e_mail", "correo"),
        value_pattern=patterns.EMAIL,
    ),
    NameRule(
        "Credit or debit card data",
        95,
        terms=("card", "cc_number", "pan", "cvv"),
        fragments=("tarjeta", "credit_card", "card_number"),
        value_pattern=patterns.CREDIT_CARD,
    ),
    NameRule(
        "Phone number",
        70,
        terms=("tel", "fax"),
        fragments=("phone", "telefono", "celular", "movil", "mobile"),
        value_pattern=patterns.PHONE,
    ),
    NameRule(
        "Postal address",
        75,
        terms=("address", "street", "calle", "avenida", "plaza", "paseo", "zip", "postcode"),
        fragments=("direccion", "domicilio", "postal_code", "codigo_postal"),
        excludes=("mail", "ip_address", "mac_address"),
    ),
    NameRule(
        "Person first or last name",
        60,
        terms=(
            "nombre", "apellido", "nombre_completo", "apellido_paterno",
            "apellido_materno", "primer_nombre", "first_name", "last_name",
            "full_name", "middle_name", "surname", "given_name",
        ),
        fragments=("nombre", "apellido"),
    ),
    NameRule(
        "Password or credential",
        100,
        terms=(
            "password", "contraseña", "contrasena", "clave", "pwd", "pass",
            "passwd", "secret", "api_key", "token",
        ),
    ),
    NameRule(
        "Financial data",
        85,
        terms=(
            "cuenta", "saldo", "monto", "tarjeta", "credito", "debito",
            "bancario", "iban", "swift", "balance", "salary", "salario",
            "income", "account_number", "bank_account",
        ),
    ),
    NameRule(
        "Medical or health data",
        95,
        terms=(
            "diagnostico", "enfermedad", "medicamento", "tratamiento",
            "paciente", "clinico", "medico", "diagnosis", "disease",
            "medication", "treatment", "patient", "clinical", "medical",
            "allergy", "allergies", "blood_type",
        ),
    ),
    NameRule(
        "Location data",
        65,
        terms=(
            "ubicacion", "coordenada", "latitud", "longitud", "direccion",
            "localizacion", "latitude", "longitude", "lat", "lng", "lon",
            "gps", "geo", "coordinates", "location",
        ),
    ),
]


def _looks_like_person_name(value: str) -> bool:
    return (
        len(value.split(" ")) >= 2
        and len(value) > 5
        and bool(patterns.PERSON_NAME_VALUE.match(value))
    )


CONTENT_RULES: list[ContentRule] = [
    ContentRule("Sample data contains email addresses", 15, lambda v: bool(patterns.EMAIL.search(v))),
    ContentRule("Sample data contains phone numbers", 30, lambda v: bool(patterns.PHONE.search(v))),
    ContentRule("Sample data contains identity documents", 40, lambda v: bool(patterns.PERSONAL_ID.search(v))),
    ContentRule("Sample data contains postal addresses", 35, lambda v: bool(patterns.ADDRESS.search(v))),
    ContentRule("Sample data contains possible person names", 25, _looks_like_person_name, min_hits=2),
]

USER_TABLE_FRAGMENTS = ("user", "usuario", "customer", "cliente")


def score_column(
    table_name: str,
    column: ColumnDescriptor,
    sample_rows: list[dict[str, Any]],
) -> tuple[int, list[str]]:
    """Score one column.

    Returns:
        ``(score, reasons)`` with the score clamped to ``[0, 100]`` and one
        reason per triggered rule, in evaluation order.
    """
    name = patterns.normalize_column_name(column.name)
    reasons: list[str] = []
    total = 0

    # Primary identifier of a user-like table
    if name == "id" and any(f in table_name.lower() for f in USER_TABLE_FRAGMENTS):
        total += 30
        reasons.append("Primary identifier of a user")

    for rule in NAME_RULES:
        if rule.matches(name):
            total += rule.weight
            reasons.append(rule.reason)

    if patterns.is_text_type(column.data_type) and sample_rows:
        values = [
            row.get(column.name)
            for row in sample_rows[:SAMPLE_SIZE]
        ]
        text_values = [v for v in values if isinstance(v, str) and v]
        for rule in CONTENT_RULES:
            hits = sum(1 for v in text_values if rule.predicate(v))
            if hits >= rule.min_hits:
                total += rule.weight
                reasons.append(rule.reason)

    if total > 0 and patterns.is_free_text_type(column.data_type):
        total += FREE_TEXT_WEIGHT
        reasons.append("Free-text column may hold unstructured personal data")

    return min(100, total), reasons


def level_for(score: int) -> tuple[SensitivityLevel, str]:
    """Map a score to its sensitivity level and recommendation."""
    for minimum, level, recommendation in THRESHOLDS:
        if score >= minimum:
            return level, recommendation
    return SensitivityLevel.NONE, NO_ACTION


def classify(snapshot: SchemaSnapshot) -> list[SensitiveFieldReport]:
    """Classify every column of a snapshot.

    Args:
        snapshot: Schema snapshot with sampled rows.

    Returns:
        One ``SensitiveFieldReport`` per column, in table then column order.
    """
    reports: list[SensitiveFieldReport] = []
    for table_name, table in snapshot.tables.items():
        for column in table.columns:
            score, reasons = score_column(table_name, column, table.sample_rows)
            level, recommendation = level_for(score)
            reports.append(
                SensitiveFieldReport(
                    table=table_name,
                    column=column.name,
                    data_type=column.data_type,
                    score=score,
                    reasons=reasons,
                    recommendation=recommendation,
                    level=level,
                )
            )
    return reports


def summarize(reports: list[SensitiveFieldReport]) -> AnalysisSummary:
    """Count reports per band and sort them by score (descending, stable)."""
    return AnalysisSummary(
        critical_count=sum(1 for r in reports if r.score >= 90),
        moderate_count=sum(1 for r in reports if 70 <= r.score < 90),
        low_count=sum(1 for r in reports if 50 <= r.score < 70),
        safe_count=sum(1 for r in reports if r.score < 50),
        fields=sorted(reports, key=lambda r: r.score, reverse=True),
    )
