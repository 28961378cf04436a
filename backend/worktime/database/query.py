"""
Helpers for composing parameter-bound SQL.

Optional filters are always expressed as ``$n`` placeholders with their values
bound separately; no caller-supplied value is ever spliced into SQL text.
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple


def placeholders(start: int, count: int) -> str:
    """Return ``$start, $start+1, ...`` for ``count`` parameters."""
    return ", ".join(f"${index}" for index in range(start, start + count))


class WhereClause:
    """AND-ed conditions with their bound parameters, numbered in order."""

    def __init__(self, alias: Optional[str] = None):
        self.conditions: List[str] = []
        self.params: List[Any] = []
        self._prefix = f"{alias}." if alias else ""

    @classmethod
    def scoped(cls, organization_id: str, alias: Optional[str] = None) -> "WhereClause":
        """Start from the two conditions every tenant read carries: owner and alive."""
        clause = cls(alias)
        clause.add("organization_id = {}", organization_id)
        clause.alive()
        return clause

    def column(self, name: str) -> str:
        return self._prefix + name

    def bind(self, value: Any) -> str:
        self.params.append(value)
        return f"${len(self.params)}"

    def add(self, template: str, *values: Any) -> "WhereClause":
        """
        Add a condition. ``template`` starts with a column name and uses ``{}``
        for each bound value, e.g. ``add("start_time >= {}", start)``.
        """
        self.conditions.append(self._prefix + template.format(*(self.bind(value) for value in values)))
        return self

    def add_if(self, value: Any, template: str) -> "WhereClause":
        if value is not None:
            self.add(template, value)
        return self

    def alive(self) -> "WhereClause":
        self.conditions.append(f"{self.column('deleted_at')} IS NULL")
        return self

    def is_in(self, column: str, values: Iterable[Any]) -> "WhereClause":
        markers = [self.bind(value) for value in values]
        if not markers:
            raise ValueError(f"IN filter on {column} needs at least one value")
        self.conditions.append(f"{self.column(column)} IN ({', '.join(markers)})")
        return self

    def sql(self) -> str:
        return " AND ".join(self.conditions) if self.conditions else "1 = 1"


def insert_statement(table: str, record: Dict[str, Any]) -> Tuple[str, List[Any]]:
    """Build a parameter-bound INSERT for ``record``; keys are trusted column names."""
    columns = list(record)
    sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders(1, len(columns))})"
    return sql, [record[column] for column in columns]
