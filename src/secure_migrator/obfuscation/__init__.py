"""Obfuscation methods, configuration and validation.

Usage:
    from secure_migrator.obfuscation import apply, validate_obfuscation_config
"""

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
    ObfuscationConfig,
    ObfuscationMethod,
    dump_config,
    validate_obfuscation_config,
)

__all__ = [
    "apply",
    "hash_value",
    "mask_value",
    "shuffle_value",
    "randomize_value",
    "obfuscate_rows",
    "obfuscate_snapshot",
    "ColumnRule",
    "ObfuscationConfig",
    "ObfuscationMethod",
    "dump_config",
    "validate_obfuscation_config",
]
