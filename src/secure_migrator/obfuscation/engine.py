"""Per-value obfuscation transforms.

Stateless functions applied to column values at transfer time and to the
sampled rows stored in backups.  ``None`` passes through every method
unchanged; any other value is transformed through its string form, except
under ``none`` which returns the original value.

Usage:
    from secure_migrator.obfuscation.engine import apply
    from secure_migrator.obfuscation.models import ObfuscationMethod

    apply("1234567890", ObfuscationMethod.MASK, {"keepStart": 2, "keepEnd": 2})
    # '12******90'
"""

import hashlib
import random
from typing import Any

from secure_migrator.analysis import patterns
from secure_migrator.obfuscation.models import (
    ColumnRule,
    ObfuscationConfig,
    ObfuscationMethod,
)
from secure_migrator.schema.models import SchemaSnapshot

_system_random = random.SystemRandom()


def hash_value(value: str) -> str:
    """SHA-256 hex digest of a string."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def mask_value(
    value: str,
    keep_start: int = 0,
    keep_end: int = 0,
    mask_char: str = "*",
) -> str:
    """Replace the middle of a string with ``mask_char``.

    Returns the value unchanged when it is not longer than
    ``keep_start + keep_end``.

    Example:
        >>> mask_value("1234567890", 2, 2)
        '12******90'
    """
    if len(value) <= keep_start + keep_end:
        return value

    start = value[:keep_start]
    end = value[len(value) - keep_end:]
    middle = mask_char * (len(value) - keep_start - keep_end)
    return start + middle + end


def shuffle_value(value: str, rng: random.Random | None = None) -> str:
    """Permute the characters of a string (Fisher-Yates)."""
    rng = rng or _system_random
    chars = list(value)
    for i in range(len(chars) - 1, 0, -1):
        j = rng.randint(0, i)
        chars[i], chars[j] = chars[j], chars[i]
    return "".join(chars)


def randomize_value(
    value: str,
    data_type: str = "text",
    rng: random.Random | None = None,
) -> str:
    """Replace a value with a same-shaped synthetic one.

    Recognizes email, credit card, phone and national-id shapes; anything
    else becomes a generic ``SAMPLE-<n>`` token.
    """
    rng = rng or _system_random

    if patterns.EMAIL.search(value):
        return f"user{rng.randint(0, 9999)}@example.com"

    if patterns.CREDIT_CARD.search(value) and sum(c.isdigit() for c in value) >= 13:
        return f"XXXX-XXXX-XXXX-{rng.randint(1000, 9999)}"

    if patterns.PHONE.search(value):
        return (
            f"+{rng.randint(1, 99)}-{rng.randint(100, 999)}-"
            f"{rng.randint(100, 999)}-{rng.randint(1000, 9999)}"
        )

    if patterns.PERSONAL_ID.search(value):
        return f"ID{rng.randint(10_000_000, 99_999_999)}"

    return f"SAMPLE-{rng.randint(0, 99_999)}"


def apply(
    value: Any,
    method: ObfuscationMethod | str,
    parameters: dict[str, Any] | None = None,
    data_type: str = "text",
    rng: random.Random | None = None,
) -> Any:
    """Apply one obfuscation method to a value.

    Args:
        value: Original value (``None`` is returned unchanged).
        method: One of the five ``ObfuscationMethod`` tags.
        parameters: Method parameters (``keepStart``, ``keepEnd``,
            ``maskChar`` for ``mask``).
        data_type: Normalized column data type.
        rng: Random source for ``shuffle``/``random`` (tests pass a seeded one).

    Returns:
        The transformed value.

    Raises:
        ValueError: If ``method`` is not a valid tag.
    """
    if value is None:
        return None

    method = ObfuscationMethod(method)
    parameters = parameters or {}
    text = str(value)

    match method:
        case ObfuscationMethod.HASH:
            return hash_value(text)
        case ObfuscationMethod.MASK:
            return mask_value(
                text,
                keep_start=parameters.get("keepStart", 0),
                keep_end=parameters.get("keepEnd", 0),
                mask_char=parameters.get("maskChar", "*"),
            )
        case ObfuscationMethod.SHUFFLE:
            return shuffle_value(text, rng)
        case ObfuscationMethod.RANDOM:
            return randomize_value(text, data_type, rng)
        case ObfuscationMethod.NONE:
            return value


def obfuscate_rows(
    rows: list[dict[str, Any]],
    rules: dict[str, ColumnRule],
    data_types: dict[str, str] | None = None,
    rng: random.Random | None = None,
) -> list[dict[str, Any]]:
    """Apply a table's column rules to a batch of rows.

    Columns without a rule are copied unchanged.  The input rows are not
    modified.
    """
    if not rules:
        return [dict(row) for row in rows]

    data_types = data_types or {}
    result: list[dict[str, Any]] = []
    for row in rows:
        new_row = dict(row)
        for column, rule in rules.items():
            if column in new_row:
                new_row[column] = apply(
                    new_row[column],
                    rule.method,
                    rule.parameters,
                    data_types.get(column, "text"),
                    rng,
                )
        result.append(new_row)
    return result


def obfuscate_snapshot(
    snapshot: SchemaSnapshot,
    config: ObfuscationConfig | None,
) -> SchemaSnapshot:
    """Return a copy of the snapshot with obfuscated sample rows."""
    if not config:
        return snapshot.model_copy(deep=True)

    tables = {}
    for table_name, table in snapshot.tables.items():
        data_types = {c.name: c.data_type for c in table.columns}
        rows = obfuscate_rows(table.sample_rows, config.get(table_name, {}), data_types)
        tables[table_name] = table.model_copy(update={"sample_rows": rows}, deep=True)

    return SchemaSnapshot(tables=tables, relations=list(snapshot.relations))
