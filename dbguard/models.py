"""Structured introspection records, mirroring the PostgreSQL metadata catalog."""
from typing import Any, Optional

from pydantic import BaseModel, Field


class SchemaInfo(BaseModel):
    schema_name: str
    schema_owner: Optional[str] = None


class TableSummary(BaseModel):
    table_name: str
    table_type: str = "BASE TABLE"
    comment: str = ""
    row_estimate: int = 0


class ColumnInfo(BaseModel):
    column_name: str
    data_type: str
    is_nullable: bool = True
    column_default: Optional[str] = None
    ordinal_position: int
    is_primary_key: bool = False
    comment: str = ""
    character_maximum_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None


class IndexInfo(BaseModel):
    index_name: str
    definition: str
    is_unique: bool = False


class ConstraintInfo(BaseModel):
    constraint_name: str
    constraint_type: str
    column_name: Optional[str] = None
    references: Optional[str] = Field(
        default=None, description="schema.table.column for foreign keys"
    )


class TableDescription(BaseModel):
    table_name: str
    schema_name: str
    columns: list[ColumnInfo]
    indexes: list[IndexInfo] = Field(default_factory=list)
    constraints: list[ConstraintInfo] = Field(default_factory=list)


class TableStats(BaseModel):
    table_name: str
    schema_name: str
    row_estimate: int = 0
    live_rows: Optional[int] = None
    data_size: int = 0
    index_size: int = 0
    total_size: int = 0
    last_analyzed: Optional[Any] = None
    comment: str = ""


class TableMatch(BaseModel):
    table_name: str
    comment: str = ""
    row_count: int = 0
    match_type: str
