"""Fluent builders rendering parameterised SQLite statements.

Each builder collects raw column and condition fragments written by the
table layer, plus the values to bind. Values never end up inside the SQL
text: conditions use ``?`` placeholders and ``compute()`` returns the
statement together with its parameters, ready for ``aiosqlite``.

Example::

    sql, params = (
        SelectBuilder("player_answer")
        .columns("*")
        .inner_join("player", ["player_answer.player_id = player.id"])
        .where(["right_answer = ?", "trivia_id = ?"], ["AND"], params=(1, 42))
        .order_by(("answer_time", "ASC"))
        .limit(3)
        .compute()
    )
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union


Params = Tuple[Any, ...]
OrderBy = Union[str, Tuple[str, str]]

_CONNECTORS = {"AND", "OR"}
_DIRECTIONS = {"ASC", "DESC"}


class QueryBuilderError(ValueError):
    """Raised when a builder is used with inconsistent input."""


def _table_name(table: Any) -> str:
    return table if isinstance(table, str) else table.table_name


def _join_conditions(conditions: Sequence[str], connectors: Optional[Sequence[str]]) -> str:
    connectors = list(connectors or [])
    if not conditions:
        raise QueryBuilderError("At least one condition is required")
    if len(connectors) != len(conditions) - 1:
        raise QueryBuilderError(
            f"Expected {len(conditions) - 1} connector(s) for {len(conditions)} condition(s), got {len(connectors)}"
        )
    for connector in connectors:
        if connector.upper() not in _CONNECTORS:
            raise QueryBuilderError(f"Unknown connector {connector!r}")

    parts = [conditions[0]]
    for connector, condition in zip(connectors, conditions[1:]):
        parts.append(f"{connector.upper()} {condition}")
    return " ".join(parts)


class Conditions:
    """Clauses shared by every statement: joins, where, order and limit."""

    def __init__(self, table: Any) -> None:
        self.table_name = _table_name(table)
        self._joins: List[str] = []
        self._join_params: List[Any] = []
        self._where: Optional[str] = None
        self._where_params: List[Any] = []
        self._order_by: List[str] = []
        self._limit: Optional[int] = None

    def inner_join(
        self,
        table: str,
        conditions: Sequence[str],
        connectors: Optional[Sequence[str]] = None,
        *,
        params: Iterable[Any] = (),
    ):
        self._joins.append(f"INNER JOIN {table} ON {_join_conditions(conditions, connectors)}")
        self._join_params.extend(params)
        return self

    def where(
        self,
        conditions: Sequence[str],
        connectors: Optional[Sequence[str]] = None,
        *,
        params: Iterable[Any] = (),
    ):
        self._where = _join_conditions(conditions, connectors)
        self._where_params = list(params)
        return self

    def order_by(self, *columns: OrderBy):
        for column in columns:
            name, direction = (column, "ASC") if isinstance(column, str) else column
            direction = direction.upper()
            if direction not in _DIRECTIONS:
                raise QueryBuilderError(f"Unknown order direction {direction!r}")
            self._order_by.append(f"{name} {direction}")
        return self

    def limit(self, count: int):
        self._limit = abs(int(count))
        return self

    def _compute_conditions(self) -> Tuple[str, Params]:
        sql = ""
        if self._joins:
            sql += " " + " ".join(self._joins)
        if self._where:
            sql += f" WHERE {self._where}"
        if self._order_by:
            sql += " ORDER BY " + ", ".join(self._order_by)
        if self._limit is not None:
            sql += f" LIMIT {self._limit}"
        return sql, tuple(self._join_params) + tuple(self._where_params)

    def compute(self) -> Tuple[str, Params]:
        raise NotImplementedError


class SelectBuilder(Conditions):
    def __init__(self, table: Any) -> None:
        super().__init__(table)
        self._columns: List[str] = []

    def columns(self, *columns: str) -> "SelectBuilder":
        self._columns.extend(column.strip() for column in columns)
        return self

    def compute(self) -> Tuple[str, Params]:
        if not self._columns:
            raise QueryBuilderError("Columns are required for a SELECT statement")
        conditions, params = self._compute_conditions()
        return f"SELECT {', '.join(self._columns)} FROM {self.table_name}{conditions}", params


class InsertIntoBuilder(Conditions):
    def __init__(self, table: Any) -> None:
        super().__init__(table)
        self._columns: List[str] = []
        self._values: List[Any] = []
        self._ignore = False

    def columns(self, *columns: str) -> "InsertIntoBuilder":
        self._columns.extend(column.strip() for column in columns)
        return self

    def values(self, *values: Any) -> "InsertIntoBuilder":
        self._values.extend(values)
        return self

    def ignore(self) -> "InsertIntoBuilder":
        self._ignore = True
        return self

    def compute(self) -> Tuple[str, Params]:
        if not self._values:
            raise QueryBuilderError("Values are required for an INSERT statement")
        if self._columns and len(self._columns) != len(self._values):
            raise QueryBuilderError(
                f"Column count ({len(self._columns)}) does not match value count ({len(self._values)})"
            )
        keyword = "INSERT OR IGNORE INTO" if self._ignore else "INSERT INTO"
        columns = f" ({', '.join(self._columns)})" if self._columns else ""
        placeholders = ", ".join("?" for _ in self._values)
        return f"{keyword} {self.table_name}{columns} VALUES ({placeholders})", tuple(self._values)


class UpdateBuilder(Conditions):
    def __init__(self, table: Any) -> None:
        super().__init__(table)
        self._columns: List[str] = []
        self._values: List[Any] = []

    def columns(self, *columns: str) -> "UpdateBuilder":
        self._columns.extend(column.strip() for column in columns)
        return self

    def values(self, *values: Any) -> "UpdateBuilder":
        self._values.extend(values)
        return self

    def compute(self) -> Tuple[str, Params]:
        if not self._columns or not self._values:
            raise QueryBuilderError("Columns and values are required for an UPDATE statement")
        if len(self._columns) != len(self._values):
            raise QueryBuilderError(
                f"Column count ({len(self._columns)}) does not match value count ({len(self._values)})"
            )
        assignments = ", ".join(f"{column} = ?" for column in self._columns)
        conditions, params = self._compute_conditions()
        return f"UPDATE {self.table_name} SET {assignments}{conditions}", tuple(self._values) + params


class DeleteBuilder(Conditions):
    def compute(self) -> Tuple[str, Params]:
        conditions, params = self._compute_conditions()
        return f"DELETE FROM {self.table_name}{conditions}", params


__all__ = [
    "Conditions",
    "DeleteBuilder",
    "InsertIntoBuilder",
    "QueryBuilderError",
    "SelectBuilder",
    "UpdateBuilder",
]
