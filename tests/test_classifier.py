"""Tests for the sensitivity classifier.

Covers rule weights, clamping, thresholds, reason ordering, determinism
and the summary.
"""

from secure_migrator.analysis.classifier import (
    NO_ACTION,
    classify,
    level_for,
    score_column,
    summarize,
)
from secure_migrator.analysis.models import SensitivityLevel
from secure_migrator.analysis.patterns import normalize_column_name, term_pattern
from secure_migrator.schema.models import ColumnDescriptor, SchemaSnapshot, TableDescriptor

from conftest import make_snapshot


def _snapshot(table: str, columns: list[ColumnDescriptor], rows: list[dict]) -> SchemaSnapshot:
    return SchemaSnapshot(tables={table: TableDescriptor(columns=columns, sample_rows=rows)})


def _report(snapshot: SchemaSnapshot, column: str):
    return next(r for r in classify(snapshot) if r.column == column)


# ============================================================
# Column-name and content rules
# ============================================================


class TestEmailColumn:
    """A column named email with email samples is high sensitivity."""

    def test_email_with_samples_scores_at_least_80(self) -> None:
        snapshot = _snapshot(
            "contacts",
            [ColumnDescriptor(name="email", data_type="varchar")],
            [{"email": "alice.smith@example.com"}, {"email": "bob@example.org"}],
        )
        report = _report(snapshot, "email")
        assert report.score >= 80
        assert report.level == SensitivityLevel.HIGH
        assert "masking or tokenization" in report.recommendation

    def test_reasons_follow_rule_order(self) -> None:
        snapshot = _snapshot(
            "contacts",
            [ColumnDescriptor(name="email", data_type="varchar")],
            [{"email": "alice.smith@example.com"}, {"email": "bob@example.org"}],
        )
        report = _report(snapshot, "email")
        assert report.reasons == [
            "Email address",
            "Sample data contains email addresses",
        ]

    def test_email_name_without_samples(self) -> None:
        score, reasons = score_column(
            "contacts", ColumnDescriptor(name="email", data_type="varchar"), []
        )
        assert score == 70
        assert reasons == ["Email address"]

    def test_spanish_column_name(self) -> None:
        score, _ = score_column(
            "clientes", ColumnDescriptor(name="correo_electronico", data_type="varchar"), []
        )
        assert score == 70

    def test_camel_case_name(self) -> None:
        score, reasons = score_column(
            "contacts", ColumnDescriptor(name="workEmail", data_type="varchar"), []
        )
        assert score == 70
        assert reasons == ["Email address"]


class TestNameRules:
    """Column-name vocabularies and token matching."""

    def test_password_is_critical(self) -> None:
        score, _ = score_column(
            "accounts", ColumnDescriptor(name="user_password", data_type="varchar"), []
        )
        assert score == 100
        assert level_for(score)[0] == SensitivityLevel.CRITICAL

    def test_token_matching_avoids_substring_false_positives(self) -> None:
        score, reasons = score_column(
            "flights", ColumnDescriptor(name="passenger_count", data_type="int"), []
        )
        assert score == 0
        assert reasons == []

    def test_user_table_primary_id(self) -> None:
        score, reasons = score_column(
            "users", ColumnDescriptor(name="id", data_type="int", is_primary_key=True), []
        )
        assert score == 30
        assert reasons == ["Primary identifier of a user"]

    def test_id_of_other_table_is_not_scored(self) -> None:
        score, _ = score_column("products", ColumnDescriptor(name="id", data_type="int"), [])
        assert score == 0

    def test_address_excludes_email_and_network_addresses(self) -> None:
        for name in ("email_address", "ip_address", "mac_address"):
            score, reasons = score_column(
                "hosts", ColumnDescriptor(name=name, data_type="varchar"), []
            )
            assert "Postal address" not in reasons, name

    def test_street_address(self) -> None:
        score, reasons = score_column(
            "customers", ColumnDescriptor(name="street_address", data_type="varchar"), []
        )
        assert score == 75
        assert reasons == ["Postal address"]

    def test_medical_vocabulary(self) -> None:
        score, _ = score_column(
            "visits", ColumnDescriptor(name="diagnosis", data_type="varchar"), []
        )
        assert score == 95

    def test_score_is_clamped_to_100(self) -> None:
        score, reasons = score_column(
            "records",
            ColumnDescriptor(name="patient_card_password", data_type="varchar"),
            [],
        )
        assert score == 100
        assert len(reasons) >= 3


class TestContentRules:
    """Sample-content rules only apply to text columns."""

    def test_free_text_amplification(self) -> None:
        column = ColumnDescriptor(name="notes", data_type="text")
        rows = [{"notes": "Calle Mayor 5"}, {"notes": "Avenida Sol 12"}]
        score, reasons = score_column("tickets", column, rows)
        assert score == 45
        assert reasons[-1].startswith("Free-text column")

    def test_no_amplification_without_a_prior_hit(self) -> None:
        column = ColumnDescriptor(name="notes", data_type="text")
        score, reasons = score_column("tickets", column, [{"notes": "all good"}])
        assert score == 0
        assert reasons == []

    def test_numeric_columns_skip_content_rules(self) -> None:
        column = ColumnDescriptor(name="reference", data_type="int")
        score, _ = score_column("orders", column, [{"reference": 12345678}])
        assert score == 0

    def test_person_names_need_two_hits(self) -> None:
        column = ColumnDescriptor(name="label", data_type="varchar")
        one = [{"label": "Maria Garcia"}, {"label": "x"}]
        two = [{"label": "Maria Garcia"}, {"label": "John Smith"}]
        assert score_column("t", column, one)[0] == 0
        assert score_column("t", column, two)[0] == 25

    def test_only_first_five_rows_are_inspected(self) -> None:
        column = ColumnDescriptor(name="contact", data_type="varchar")
        rows = [{"contact": "n/a"}] * 5 + [{"contact": "eve@example.com"}]
        score, _ = score_column("t", column, rows)
        assert score == 0


# ============================================================
# Thresholds, bounds, determinism
# ============================================================


class TestThresholds:
    """Score to level mapping."""

    def test_boundaries(self) -> None:
        assert level_for(100)[0] == SensitivityLevel.CRITICAL
        assert level_for(90)[0] == SensitivityLevel.CRITICAL
        assert level_for(89)[0] == SensitivityLevel.HIGH
        assert level_for(70)[0] == SensitivityLevel.HIGH
        assert level_for(69)[0] == SensitivityLevel.MEDIUM
        assert level_for(50)[0] == SensitivityLevel.MEDIUM
        assert level_for(49)[0] == SensitivityLevel.LOW
        assert level_for(30)[0] == SensitivityLevel.LOW
        assert level_for(29) == (SensitivityLevel.NONE, NO_ACTION)
        assert level_for(0) == (SensitivityLevel.NONE, NO_ACTION)


class TestClassify:
    """Whole-snapshot classification."""

    def test_one_report_per_column_in_order(self) -> None:
        snapshot = make_snapshot()
        reports = classify(snapshot)
        assert [(r.table, r.column) for r in reports] == [
            (t, c.name) for t, d in snapshot.tables.items() for c in d.columns
        ]

    def test_scores_within_bounds(self) -> None:
        for report in classify(make_snapshot()):
            assert 0 <= report.score <= 100

    def test_deterministic(self) -> None:
        assert classify(make_snapshot()) == classify(make_snapshot())

    def test_empty_snapshot(self) -> None:
        assert classify(SchemaSnapshot()) == []


class TestSummarize:
    """Band counts and ordering."""

    def test_counts_and_sorting(self) -> None:
        summary = summarize(classify(make_snapshot()))
        scores = [f.score for f in summary.fields]
        assert scores == sorted(scores, reverse=True)
        total = (
            summary.critical_count
            + summary.moderate_count
            + summary.low_count
            + summary.safe_count
        )
        assert total == len(summary.fields)

    def test_format_report_lists_sensitive_fields(self) -> None:
        summary = summarize(classify(make_snapshot()))
        text = summary.format_report()
        assert text.startswith("Sensitive fields:")
        assert "users.email" in text


class TestPatterns:
    """Pattern helpers."""

    def test_normalize_column_name(self) -> None:
        assert normalize_column_name("firstName") == "first_name"
        assert normalize_column_name("EMAIL") == "email"

    def test_term_pattern_boundaries(self) -> None:
        pattern = term_pattern("pass")
        assert pattern.search("pass")
        assert pattern.search("user_pass")
        assert not pattern.search("passenger")
