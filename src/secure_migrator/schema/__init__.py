"""Schema snapshot models and introspection.

The introspector depends on the adapters package, which itself depends on
these models, so it is imported from its module rather than re-exported here.

Usage:
    from secure_migrator.schema import SchemaSnapshot, TableDescriptor
    from secure_migrator.schema.introspector import extract
"""

from secure_migrator.schema.models import (
    ColumnDescriptor,
    RelationEdge,
    SchemaSnapshot,
    TableDescriptor,
)

__all__ = [
    "SchemaSnapshot",
    "TableDescriptor",
    "ColumnDescriptor",
    "RelationEdge",
]
