"""Response formatting helpers."""
import json
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel


class ResponseFormat(str, Enum):
    MARKDOWN = "markdown"
    JSON = "json"


def to_jsonable(value: Any) -> Any:
    """Convert pydantic records, nested in dicts or lists, to plain data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def dumps(value: Any) -> str:
    return json.dumps(to_jsonable(value), indent=2, default=str, ensure_ascii=False)


def format_query_results(
    result: Union[list[dict], dict],
    columns: list[str] = None,
    fmt: ResponseFormat = ResponseFormat.MARKDOWN,
) -> str:
    if isinstance(result, dict):
        if fmt == ResponseFormat.JSON:
            return dumps(result)
        return (
            f"**Statement executed ({result.get('status', 'success')})**: "
            f"{result.get('affected_rows', 0)} row(s) affected"
        )
    rows = result
    if fmt == ResponseFormat.JSON:
        return dumps({"row_count": len(rows), "rows": rows})
    if not rows:
        return "_No results returned._"
    cols = columns or list(rows[0].keys())
    lines = [f"**{len(rows)} row(s) returned**\n"]
    lines.append("| " + " | ".join(cols) + " |")
    lines.append("| " + " | ".join(["---"] * len(cols)) + " |")
    for row in rows[:50]:
        vals = [str(row.get(c, "")) for c in cols]
        lines.append("| " + " | ".join(vals) + " |")
    if len(rows) > 50:
        lines.append(f"\n_...and {len(rows) - 50} more rows (use LIMIT to control)_")
    return "\n".join(lines)


def format_table_list(
    tables: list, schema: str, fmt: ResponseFormat = ResponseFormat.MARKDOWN
) -> str:
    if fmt == ResponseFormat.JSON:
        return dumps({"schema": schema, "tables": tables})
    if not tables:
        return "_No tables found._"
    lines = [f"## Tables in `{schema}` ({len(tables)})\n"]
    for t in tables:
        lines.append(f"- **{schema}.{t.table_name}** ({t.table_type}, ~{t.row_estimate} rows)")
        if t.comment:
            lines.append(f"  - {t.comment}")
    return "\n".join(lines)


def format_table_description(
    description, fmt: ResponseFormat = ResponseFormat.MARKDOWN
) -> str:
    if fmt == ResponseFormat.JSON:
        return dumps(description)
    name = f"{description.schema_name}.{description.table_name}"
    lines = [f"## Schema: `{name}`\n"]
    lines.append("| # | Column | Type | Nullable | Default | PK | Comment |")
    lines.append("| --- | --- | --- | --- | --- | --- | --- |")
    for c in description.columns:
        lines.append(
            f"| {c.ordinal_position} | {c.column_name} | {c.data_type} | "
            f"{'YES' if c.is_nullable else 'NO'} | {c.column_default or ''} | "
            f"{'YES' if c.is_primary_key else ''} | {c.comment} |"
        )
    if description.indexes:
        lines.append("\n### Indexes")
        for idx in description.indexes:
            unique = " (unique)" if idx.is_unique else ""
            lines.append(f"- **{idx.index_name}**{unique}: `{idx.definition}`")
    if description.constraints:
        lines.append("\n### Constraints")
        for con in description.constraints:
            line = f"- **{con.constraint_name}** {con.constraint_type}"
            if con.column_name:
                line += f" on `{con.column_name}`"
            if con.references:
                line += f" -> `{con.references}`"
            lines.append(line)
    return "\n".join(lines)
