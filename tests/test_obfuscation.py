"""Tests for the obfuscation engine and config validation."""

import random
from collections import Counter

import pytest

from secure_migrator.errors import ConfigValidationError
from secure_migrator.obfuscation.engine import (
    apply,
    hash_value,
    mask_value,
    obfuscate_rows,
    obfuscate_snapshot,
    randomize_value,
    shuffle_value,
)
from secure_migrator.obfuscation.models import (
    ColumnRule,
    ObfuscationMethod,
    dump_config,
    validate_obfuscation_config,
)

from conftest import make_snapshot


# ============================================================
# Methods
# ============================================================


class TestMask:
    """mask keeps the ends and replaces the middle."""

    def test_reference_example(self) -> None:
        assert mask_value("1234567890", 2, 2, "*") == "12******90"

    def test_through_apply(self) -> None:
        result = apply(
            "1234567890",
            ObfuscationMethod.MASK,
            {"keepStart": 2, "keepEnd": 2, "maskChar": "*"},
        )
        assert result == "12******90"

    def test_default_mask_char(self) -> None:
        assert apply("secret", "mask", {"keepStart": 1}) == "s*****"

    def test_keep_end_only(self) -> None:
        assert mask_value("4111111111111111", 0, 4, "#") == "############1111"

    def test_no_parameters_masks_everything(self) -> None:
        assert apply("abc", ObfuscationMethod.MASK) == "***"

    def test_short_value_unchanged(self) -> None:
        assert mask_value("abcd", 2, 2) == "abcd"
        assert mask_value("abc", 2, 2) == "abc"

    def test_non_string_value_uses_string_form(self) -> None:
        assert apply(123456, "mask", {"keepEnd": 2}) == "****56"


class TestHash:
    """hash is a deterministic SHA-256 digest."""

    def test_deterministic(self) -> None:
        assert hash_value("alice@example.com") == hash_value("alice@example.com")

    def test_differs_for_different_input(self) -> None:
        assert hash_value("alice@example.com") != hash_value("alice@example.con")

    def test_hex_digest(self) -> None:
        digest = apply("x", ObfuscationMethod.HASH)
        assert len(digest) == 64
        int(digest, 16)

    def test_hash_of_int_matches_string(self) -> None:
        assert apply(42, "hash") == hash_value("42")


class TestShuffle:
    """shuffle always yields an anagram."""

    @pytest.mark.parametrize("value", ["", "a", "hello world", "1234567890", "ñandú"])
    def test_anagram(self, value: str) -> None:
        result = shuffle_value(value, random.Random(7))
        assert Counter(result) == Counter(value)
        assert len(result) == len(value)

    def test_seeded_is_reproducible(self) -> None:
        a = apply("abcdefgh", "shuffle", rng=random.Random(1))
        b = apply("abcdefgh", "shuffle", rng=random.Random(1))
        assert a == b


class TestRandom:
    """random replaces values with same-shaped fakes."""

    def test_email(self) -> None:
        result = randomize_value("alice@corp.com", rng=random.Random(3))
        assert result.startswith("user")
        assert result.endswith("@example.com")

    def test_credit_card(self) -> None:
        result = randomize_value("4111 1111 1111 1111", rng=random.Random(3))
        assert result.startswith("XXXX-XXXX-XXXX-")

    def test_phone(self) -> None:
        result = randomize_value("555-123-4567", rng=random.Random(3))
        assert result.startswith("+")
        assert result.count("-") == 3

    def test_national_id(self) -> None:
        result = randomize_value("12345678", rng=random.Random(3))
        assert result.startswith("ID")
        assert len(result) == 10

    def test_generic_token(self) -> None:
        assert randomize_value("hello", rng=random.Random(3)).startswith("SAMPLE-")


class TestApply:
    """Dispatch and null handling."""

    @pytest.mark.parametrize("method", list(ObfuscationMethod))
    def test_none_passes_through(self, method: ObfuscationMethod) -> None:
        assert apply(None, method, {"keepStart": 1}) is None

    def test_none_method_is_identity(self) -> None:
        value = {"nested": True}
        assert apply(value, ObfuscationMethod.NONE) is value

    def test_invalid_method_rejected(self) -> None:
        with pytest.raises(ValueError):
            apply("x", "encrypt")


class TestObfuscateRows:
    """Row and snapshot helpers."""

    def test_rules_applied_other_columns_copied(self) -> None:
        rows = [{"id": 1, "email": "a@b.co", "note": None}]
        rules = {
            "email": ColumnRule(method=ObfuscationMethod.HASH),
            "note": ColumnRule(method=ObfuscationMethod.MASK),
        }
        result = obfuscate_rows(rows, rules)
        assert result[0]["id"] == 1
        assert result[0]["email"] == hash_value("a@b.co")
        assert result[0]["note"] is None
        assert rows[0]["email"] == "a@b.co"

    def test_snapshot_sample_rows_obfuscated(self) -> None:
        snapshot = make_snapshot()
        config = {"users": {"email": ColumnRule(method=ObfuscationMethod.HASH)}}
        result = obfuscate_snapshot(snapshot, config)
        originals = [r["email"] for r in snapshot.tables["users"].sample_rows]
        obfuscated = [r["email"] for r in result.tables["users"].sample_rows]
        assert obfuscated == [hash_value(v) for v in originals]
        assert result.tables["orders"].sample_rows == snapshot.tables["orders"].sample_rows
        assert result.relations == snapshot.relations


# ============================================================
# Config validation
# ============================================================


class TestValidateConfig:
    """All-or-nothing validation against a snapshot."""

    def test_valid_config(self) -> None:
        config = validate_obfuscation_config(
            {
                "users": {
                    "email": {"method": "hash"},
                    "full_name": {"method": "mask", "parameters": {"keepStart": 1}},
                },
            },
            make_snapshot(),
        )
        assert config["users"]["email"].method is ObfuscationMethod.HASH
        assert config["users"]["full_name"].parameters == {"keepStart": 1}

    def test_unknown_column(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_obfuscation_config(
                {"users": {"email": {"method": "hash"}, "ssn": {"method": "hash"}}},
                make_snapshot(),
            )
        assert exc_info.value.field == "users.ssn"

    def test_unknown_table(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_obfuscation_config(
                {"ghosts": {"name": {"method": "hash"}}}, make_snapshot()
            )
        assert exc_info.value.field == "ghosts.name"

    def test_invalid_method(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_obfuscation_config(
                {"users": {"email": {"method": "encrypt"}}}, make_snapshot()
            )
        assert exc_info.value.field == "users.email"
        assert "encrypt" in exc_info.value.reason

    def test_first_offending_entry_is_named(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_obfuscation_config(
                {
                    "users": {"nope": {"method": "hash"}},
                    "orders": {"missing": {"method": "hash"}},
                },
                make_snapshot(),
            )
        assert exc_info.value.field == "users.nope"

    @pytest.mark.parametrize(
        "parameters",
        [{"keepStart": -1}, {"keepEnd": "2"}, {"maskChar": "**"}, {"keepStart": True}],
    )
    def test_invalid_mask_parameters(self, parameters: dict) -> None:
        with pytest.raises(ConfigValidationError):
            validate_obfuscation_config(
                {"users": {"email": {"method": "mask", "parameters": parameters}}},
                make_snapshot(),
            )

    def test_empty_tables_dropped(self) -> None:
        config = validate_obfuscation_config({"users": {}}, make_snapshot())
        assert config == {}

    def test_non_mapping_rejected(self) -> None:
        with pytest.raises(ConfigValidationError):
            validate_obfuscation_config(["users"], make_snapshot())

    def test_dump_config(self) -> None:
        config = {"users": {"email": ColumnRule(method=ObfuscationMethod.HASH)}}
        assert dump_config(config) == {
            "users": {"email": {"method": "hash", "parameters": {}}}
        }
