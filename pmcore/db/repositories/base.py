"""
Generic record store.

One `RecordStore` serves any table that has a UUID ``id`` column. What varies
per entity (alias, searchable columns, filter keys, sortable columns and the
optional joined read projection) is carried by a `QueryStrategy` value
rather than by subclass hooks.
"""
from __future__ import annotations

import asyncio
import logging
import math
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time
from typing import Any, AsyncIterator, Dict, FrozenSet, List, Mapping, Optional, Tuple

from sqlalchemy import Boolean, Date, DateTime, Integer, Table, Uuid, column, delete, insert, text, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.types import TypeEngine

from pmcore.db.database import Database
from pmcore.db.errors import ConstraintViolationError, StorageError, ValidationError
from pmcore.db.models import now_utc
from pmcore.db.schemas.filters import QueryFilters
from pmcore.db.repositories.predicates import Predicate, PredicateBuilder, check_identifier, is_absent

logger = logging.getLogger(__name__)

# Maintained by the store, never taken from caller input.
MANAGED_COLUMNS = ("id", "created_at", "updated_at")

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off"}


@dataclass(frozen=True)
class FilterField:
    """Maps a filter key onto a column of the store's table."""

    column: str
    op: str = "="


@dataclass(frozen=True)
class DetailProjection:
    """Read-only joined columns decorating a base row.

    ``columns`` holds ``(sql expression, label, type)`` triples; ``group_by``
    lists the non-aggregated joined expressions when ``aggregate`` is set
    (the base row is grouped by its primary key).
    """

    joins: str
    columns: Tuple[Tuple[str, str, TypeEngine], ...]
    aggregate: bool = False
    group_by: Tuple[str, ...] = ()


@dataclass(frozen=True)
class QueryStrategy:
    alias: str
    search_columns: Tuple[str, ...] = ()
    filters: Mapping[str, FilterField] = field(default_factory=dict)
    sortable: FrozenSet[str] = frozenset({"created_at", "updated_at"})
    default_sort: str = "created_at"
    detail: Optional[DetailProjection] = None


@dataclass(frozen=True)
class PageResult:
    data: List[Dict[str, Any]]
    total: int

    def total_pages(self, limit: int) -> int:
        return math.ceil(self.total / limit) if limit and limit > 0 else 0


def coerce_value(col, value: Any) -> Any:
    """Convert wire-format values (strings) into the column's Python type."""
    if value is None:
        return None
    type_ = col.type
    try:
        if isinstance(type_, Uuid) and not isinstance(value, uuid.UUID):
            return uuid.UUID(str(value))
        if isinstance(type_, DateTime):
            if isinstance(value, str):
                value = datetime.fromisoformat(value)
            elif isinstance(value, date) and not isinstance(value, datetime):
                value = datetime.combine(value, time.min)
            # SQLite keeps wall-clock text only, so every aware value is bound as UTC
            if isinstance(value, datetime) and value.tzinfo is not None:
                return value.astimezone(UTC)
            return value
        if isinstance(type_, Date) and isinstance(value, str):
            return date.fromisoformat(value)
        if isinstance(type_, Boolean) and isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
            raise ValueError(value)
        if isinstance(type_, Integer) and isinstance(value, str):
            return int(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid value for {col.name}: {value!r}") from exc
    return value


def is_date_only(value: Any) -> bool:
    if isinstance(value, date) and not isinstance(value, datetime):
        return True
    if isinstance(value, str):
        try:
            date.fromisoformat(value)
        except ValueError:
            return False
        return True
    return False


def dialect_insert(database: Database, table: Table):
    """INSERT construct supporting ON CONFLICT for the database's dialect."""
    if database.dialect_name == "postgresql":
        return postgresql.insert(table)
    if database.dialect_name == "sqlite":
        return sqlite.insert(table)
    raise StorageError(f"ON CONFLICT inserts are not supported on {database.dialect_name}")


class RecordStore:
    def __init__(self, database: Database, table: Table, strategy: QueryStrategy) -> None:
        check_identifier(strategy.alias)
        self.database = database
        self.table = table
        self.strategy = strategy

    @property
    def name(self) -> str:
        return self.table.name

    # ----------------------------------------------------------------- plumbing

    @asynccontextmanager
    async def operation(self, name: str, timeout: Optional[float] = None) -> AsyncIterator[None]:
        """Apply the deadline and translate driver errors for one unit of work."""
        if timeout is None:
            timeout = self.database.default_timeout
        try:
            async with asyncio.timeout(timeout):
                yield
        except IntegrityError as e:
            logger.error(f"Constraint violation during {name} on {self.name}: {e.orig}")
            raise ConstraintViolationError(f"{name} on {self.name} violated a constraint", orig=e) from e
        except SQLAlchemyError as e:
            logger.error(f"Error during {name} on {self.name}: {e}")
            raise StorageError(f"{name} on {self.name} failed", orig=e) from e

    async def fetch_all(self, stmt, *, operation: str, timeout: Optional[float] = None) -> List[Dict[str, Any]]:
        async with self.operation(operation, timeout):
            async with self.database.connect() as conn:
                result = await conn.execute(stmt)
                return [dict(row) for row in result.mappings().all()]

    async def fetch_one(self, stmt, *, operation: str, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
        async with self.operation(operation, timeout):
            async with self.database.connect() as conn:
                result = await conn.execute(stmt)
                row = result.mappings().first()
        return dict(row) if row is not None else None

    async def execute(self, stmt, *, operation: str, timeout: Optional[float] = None) -> int:
        """Run a write statement in its own transaction; returns the row count."""
        async with self.operation(operation, timeout):
            async with self.database.begin() as conn:
                result = await conn.execute(stmt)
                return result.rowcount

    def coerce_id(self, record_id: Any) -> Optional[uuid.UUID]:
        """Return the typed key, or None when the id cannot name any row."""
        if record_id is None:
            return None
        try:
            return coerce_value(self.table.c.id, record_id)
        except ValidationError:
            logger.debug(f"Malformed id for {self.name}: {record_id!r}")
            return None

    def prepare_values(self, fields: Mapping[str, Any], operation: str) -> Dict[str, Any]:
        """Validate caller fields against the table and coerce them for binding."""
        data = {k: v for k, v in dict(fields or {}).items() if k not in MANAGED_COLUMNS}
        if not data:
            raise ValidationError(f"{operation} on {self.name} requires at least one field")
        unknown = sorted(k for k in data if k not in self.table.c)
        if unknown:
            raise ValidationError(f"Unknown column(s) for {self.name}: {', '.join(unknown)}")
        return {k: coerce_value(self.table.c[k], v) for k, v in data.items()}

    # ------------------------------------------------------------ query building

    def resolve_sort(self, sort_by: Optional[str], sort_order: Optional[str]) -> Tuple[str, str]:
        sort_column = sort_by or self.strategy.default_sort
        if sort_column not in self.strategy.sortable or sort_column not in self.table.c:
            raise ValidationError(f"Cannot sort {self.name} by {sort_column!r}")
        direction = (sort_order or "desc").lower()
        if direction not in ("asc", "desc"):
            raise ValidationError(f"Invalid sort order: {sort_order!r}")
        return sort_column, direction.upper()

    def build_predicate(self, filters: QueryFilters, builder: Optional[PredicateBuilder] = None) -> Predicate:
        """Search group first, then filter predicates, on one running index."""
        builder = builder if builder is not None else PredicateBuilder()
        alias = self.strategy.alias
        builder.add_search([f"{alias}.{c}" for c in self.strategy.search_columns], filters.search)

        supplied = filters.filters or {}
        for key in supplied:
            if key not in self.strategy.filters:
                logger.debug(f"Ignoring unrecognized filter {key!r} for {self.name}")
        # Strategy order, not caller order, so identical filter sets bind identically.
        for key, flt in self.strategy.filters.items():
            value = supplied.get(key)
            if is_absent(value):
                continue
            col = self.table.c[flt.column]
            bound = coerce_value(col, value)
            if flt.op == "<=" and isinstance(col.type, DateTime) and is_date_only(value):
                # a bare date as an upper bound includes that whole day
                bound = datetime.combine(bound.date(), time.max)
            builder.add_predicate(f"{alias}.{flt.column}", flt.op, bound, col.type)
        return builder.build()

    def select_statement(self, where: Predicate, *, detailed: bool = False, tail: str = "", tail_params=()):
        alias = self.strategy.alias
        select_list = [f"{alias}.{c.name}" for c in self.table.c]
        typed: list = list(self.table.c)
        from_sql = f"{self.table.name} AS {alias}"
        group_sql = ""
        detail = self.strategy.detail if detailed else None
        if detail is not None:
            from_sql = f"{from_sql} {detail.joins}"
            for expr, label, type_ in detail.columns:
                select_list.append(f"{expr} AS {check_identifier(label)}")
                typed.append(column(label, type_))
            if detail.aggregate:
                group_sql = "GROUP BY " + ", ".join((f"{alias}.id",) + detail.group_by)
        sql = " ".join(
            part for part in (
                f"SELECT {', '.join(select_list)} FROM {from_sql}",
                where.where,
                group_sql,
                tail,
            ) if part
        )
        params = [p.as_bindparam() for p in (*where.params, *tail_params)]
        return text(sql).bindparams(*params).columns(*typed)

    # ---------------------------------------------------------------- contract

    def insert_statement(self, fields: Mapping[str, Any]):
        """Validated INSERT ... RETURNING for one row, timestamps stamped."""
        values = self.prepare_values(fields, "create")
        now = now_utc()
        for managed in ("created_at", "updated_at"):
            if managed in self.table.c:
                values[managed] = now
        return insert(self.table).values(**values).returning(*self.table.c)

    async def create(self, fields: Mapping[str, Any], *, timeout: Optional[float] = None) -> Dict[str, Any]:
        stmt = self.insert_statement(fields)
        async with self.operation("create", timeout):
            async with self.database.begin() as conn:
                result = await conn.execute(stmt)
                row = result.mappings().one()
        return dict(row)

    async def find_by_id(
        self, record_id: Any, *, detailed: bool = False, timeout: Optional[float] = None
    ) -> Optional[Dict[str, Any]]:
        key = self.coerce_id(record_id)
        if key is None:
            return None
        builder = PredicateBuilder()
        builder.add_predicate(f"{self.strategy.alias}.id", "=", key, self.table.c.id.type)
        stmt = self.select_statement(builder.build(), detailed=detailed)
        return await self.fetch_one(stmt, operation="find_by_id", timeout=timeout)

    async def update(
        self, record_id: Any, fields: Mapping[str, Any], *, timeout: Optional[float] = None
    ) -> Optional[Dict[str, Any]]:
        values = self.prepare_values(fields, "update")
        key = self.coerce_id(record_id)
        if key is None:
            return None
        if "updated_at" in self.table.c:
            values["updated_at"] = now_utc()
        stmt = (
            update(self.table)
            .where(self.table.c.id == key)
            .values(**values)
            .returning(*self.table.c)
        )
        async with self.operation("update", timeout):
            async with self.database.begin() as conn:
                result = await conn.execute(stmt)
                row = result.mappings().first()
        if row is None:
            logger.debug(f"{self.name} {record_id} not found for update")
            return None
        return dict(row)

    async def delete(self, record_id: Any, *, timeout: Optional[float] = None) -> bool:
        key = self.coerce_id(record_id)
        if key is None:
            return False
        stmt = delete(self.table).where(self.table.c.id == key)
        removed = await self.execute(stmt, operation="delete", timeout=timeout)
        return removed is not None and removed > 0

    async def list(
        self,
        filters: Optional[QueryFilters] = None,
        *,
        detailed: bool = False,
        timeout: Optional[float] = None,
    ) -> PageResult:
        """Count the filtered set, then fetch one sorted page with the same predicate."""
        filters = filters if filters is not None else QueryFilters()
        sort_column, direction = self.resolve_sort(filters.sort_by, filters.sort_order)

        builder = PredicateBuilder()
        where = self.build_predicate(filters, builder)
        alias = self.strategy.alias

        count_stmt = text(
            f"SELECT COUNT(*) AS total FROM {self.table.name} AS {alias} {where.where}".rstrip()
        ).bindparams(*where.bindparams())

        limit_ph = builder.bind(filters.limit)
        offset_ph = builder.bind(filters.offset)
        tail = (
            f"ORDER BY {alias}.{sort_column} {direction}, {alias}.id {direction} "
            f"LIMIT {limit_ph} OFFSET {offset_ph}"
        )
        data_stmt = self.select_statement(
            where, detailed=detailed, tail=tail, tail_params=builder.params[len(where.params):]
        )

        async with self.operation("list", timeout):
            async with self.database.connect() as conn:
                total = (await conn.execute(count_stmt)).scalar_one()
                rows = (await conn.execute(data_stmt)).mappings().all()
        return PageResult(data=[dict(row) for row in rows], total=int(total))
