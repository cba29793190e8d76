"""Pydantic models for normalized schema snapshots.

A ``SchemaSnapshot`` is the engine-independent description of a source
database produced by the introspector: tables (in enumeration order), their
columns, a small sample of rows, and the foreign-key edges between them.
"""

from typing import Any

from pydantic import BaseModel, Field, model_validator


class ColumnDescriptor(BaseModel):
    """Normalized column description.

    Example:
        >>> col = ColumnDescriptor(name="id", data_type="int", is_primary_key=True)
        >>> col.nullable
        True
    """

    name: str
    data_type: str
    nullable: bool = True
    is_primary_key: bool = False
    max_length: int | None = None


class TableDescriptor(BaseModel):
    """Columns plus sampled rows of one table."""

    columns: list[ColumnDescriptor] = Field(default_factory=list)
    sample_rows: list[dict[str, Any]] = Field(default_factory=list)

    def column(self, name: str) -> ColumnDescriptor | None:
        """Find a column by name."""
        for col in self.columns:
            if col.name == name:
                return col
        return None

    @property
    def primary_key(self) -> list[str]:
        """Names of the primary-key columns, in column order."""
        return [col.name for col in self.columns if col.is_primary_key]


class RelationEdge(BaseModel):
    """Foreign-key edge ``source_table.source_column -> target_table.target_column``."""

    source_table: str
    source_column: str
    target_table: str
    target_column: str


class SchemaSnapshot(BaseModel):
    """Point-in-time description of a source database.

    Invariant: every relation endpoint references a table and column that
    exist in the same snapshot.
    """

    tables: dict[str, TableDescriptor] = Field(default_factory=dict)
    relations: list[RelationEdge] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_relation_endpoints(self) -> "SchemaSnapshot":
        for edge in self.relations:
            for table, column in (
                (edge.source_table, edge.source_column),
                (edge.target_table, edge.target_column),
            ):
                descriptor = self.tables.get(table)
                if descriptor is None or descriptor.column(column) is None:
                    raise ValueError(
                        f"Relation endpoint {table}.{column} not found in snapshot"
                    )
        return self

    @property
    def table_names(self) -> list[str]:
        """Table names in enumeration order."""
        return list(self.tables.keys())

    def has_column(self, table: str, column: str) -> bool:
        """Whether ``table.column`` exists in this snapshot."""
        descriptor = self.tables.get(table)
        return descriptor is not None and descriptor.column(column) is not None
