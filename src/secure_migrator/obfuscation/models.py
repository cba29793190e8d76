"""Obfuscation configuration models and validation.

An obfuscation config maps ``table -> column -> ColumnRule``.  Raw configs
coming from an operator are validated against the current snapshot in full
before anything is stored: the first offending ``(table, column)`` rejects
the whole config.
"""

from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from secure_migrator.errors import ConfigValidationError
from secure_migrator.schema.models import SchemaSnapshot


class ObfuscationMethod(StrEnum):
    """The five supported transforms."""

    HASH = "hash"
    MASK = "mask"
    RANDOM = "random"
    SHUFFLE = "shuffle"
    NONE = "none"


class ColumnRule(BaseModel):
    """Transform applied to one column.

    Example:
        >>> rule = ColumnRule(method=ObfuscationMethod.MASK, parameters={"keepEnd": 4})
        >>> rule.method.value
        'mask'
    """

    method: ObfuscationMethod
    parameters: dict[str, Any] = Field(default_factory=dict)


# table -> column -> rule
ObfuscationConfig = dict[str, dict[str, ColumnRule]]

MASK_INT_PARAMETERS = ("keepStart", "keepEnd")


def _check_mask_parameters(params: Mapping[str, Any], where: str) -> None:
    for key in MASK_INT_PARAMETERS:
        value = params.get(key, 0)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ConfigValidationError(
                f"Mask parameter '{key}' of {where} must be a non-negative integer",
                field=where,
            )
    mask_char = params.get("maskChar", "*")
    if not isinstance(mask_char, str) or len(mask_char) != 1:
        raise ConfigValidationError(
            f"Mask parameter 'maskChar' of {where} must be a single character",
            field=where,
        )


def validate_obfuscation_config(
    raw: Any,
    snapshot: SchemaSnapshot,
) -> ObfuscationConfig:
    """Validate a raw config against a snapshot.

    Empty table entries are dropped.

    Args:
        raw: Mapping of ``table -> column -> {"method", "parameters"}``.
        snapshot: Current schema snapshot.

    Returns:
        The parsed ``ObfuscationConfig``.

    Raises:
        ConfigValidationError: On the first unknown table, unknown column,
            invalid method, or invalid parameters.  ``field`` is
            ``"table.column"``.
    """
    if not isinstance(raw, Mapping):
        raise ConfigValidationError("Obfuscation config must be a mapping of tables")

    config: ObfuscationConfig = {}

    for table_name, table_config in raw.items():
        if not table_config:
            continue
        if not isinstance(table_config, Mapping):
            raise ConfigValidationError(
                f"Configuration of table '{table_name}' must be a mapping of columns",
                field=str(table_name),
            )

        table = snapshot.tables.get(table_name)
        if table is None:
            first_column = next(iter(table_config))
            raise ConfigValidationError(
                f"Table '{table_name}' does not exist in the schema",
                field=f"{table_name}.{first_column}",
            )

        rules: dict[str, ColumnRule] = {}
        for column_name, column_config in table_config.items():
            where = f"{table_name}.{column_name}"
            if table.column(column_name) is None:
                raise ConfigValidationError(
                    f"Column '{column_name}' does not exist in table '{table_name}'",
                    field=where,
                )
            if not isinstance(column_config, Mapping):
                raise ConfigValidationError(
                    f"Rule for {where} must be a mapping with a 'method'",
                    field=where,
                )

            method = column_config.get("method")
            if not isinstance(method, str) or method not in {m.value for m in ObfuscationMethod}:
                raise ConfigValidationError(
                    f"Invalid obfuscation method for {where}: '{method}'",
                    field=where,
                )

            parameters = column_config.get("parameters") or {}
            if not isinstance(parameters, Mapping):
                raise ConfigValidationError(
                    f"Parameters for {where} must be a mapping", field=where
                )
            if method == ObfuscationMethod.MASK:
                _check_mask_parameters(parameters, where)

            rules[column_name] = ColumnRule(
                method=ObfuscationMethod(method), parameters=dict(parameters)
            )

        config[table_name] = rules

    return config


def dump_config(config: ObfuscationConfig) -> dict[str, dict[str, dict[str, Any]]]:
    """JSON-compatible form of a config."""
    return {
        table: {column: rule.model_dump(mode="json") for column, rule in rules.items()}
        for table, rules in config.items()
    }
