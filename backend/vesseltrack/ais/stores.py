"""Storage layer for current vessel state and the archive log.

Both stores take a ``VesselFilter`` as their predicate and translate it
into SQLAlchemy conditions. Upserts use ``INSERT ... ON CONFLICT`` for
the bound dialect (PostgreSQL in production, SQLite in tests).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Generic, Iterable, Optional, Sequence, TypeVar

from sqlalchemy import ColumnElement, and_, delete, distinct, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from vesseltrack.ais.query_builder import VesselFilter
from vesseltrack.models import CurrentVessel, VesselLog

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", CurrentVessel, VesselLog)

# (attribute name, "asc" | "desc")
SortSpec = tuple[str, str]


@dataclass
class BulkWriteResult:
    """Outcome of a bulk upsert with continue-on-error semantics."""

    upserted: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"upserted": self.upserted, "errors": list(self.errors)}


def filter_conditions(model: type, flt: Optional[VesselFilter]) -> list[ColumnElement[bool]]:
    """Translate a ``VesselFilter`` into SQLAlchemy conditions for ``model``."""
    if flt is None:
        return []

    conditions: list[ColumnElement[bool]] = []

    if flt.min_longitude is not None:
        conditions.append(model.longitude >= flt.min_longitude)
    if flt.max_longitude is not None:
        conditions.append(model.longitude <= flt.max_longitude)
    if flt.min_latitude is not None:
        conditions.append(model.latitude >= flt.min_latitude)
    if flt.max_latitude is not None:
        conditions.append(model.latitude <= flt.max_latitude)

    if flt.start_date is not None:
        conditions.append(model.timestamp >= flt.start_date)
    if flt.end_date is not None:
        conditions.append(model.timestamp <= flt.end_date)
    if flt.timestamp_before is not None:
        conditions.append(model.timestamp < flt.timestamp_before)

    if flt.mmsi is not None:
        conditions.append(model.mmsi == flt.mmsi)
    elif flt.mmsi_in:
        conditions.append(model.mmsi.in_(flt.mmsi_in))

    if flt.source is not None:
        conditions.append(model.source == flt.source)

    # Status only exists on the archive table
    if flt.status is not None and hasattr(model, "status"):
        conditions.append(model.status == flt.status)

    return conditions


class _VesselStore(Generic[ModelT]):
    """Read/delete operations shared by both stores."""

    model: type[ModelT]

    def __init__(self, session: AsyncSession):
        self.session = session

    def _column(self, name: str):
        column = getattr(self.model, name, None)
        if column is None:
            raise ValueError(f"Unknown field for {self.model.__name__}: {name}")
        return column

    def _where(self, stmt, flt: Optional[VesselFilter]):
        conditions = filter_conditions(self.model, flt)
        if conditions:
            stmt = stmt.where(and_(*conditions))
        return stmt

    def _dialect_insert(self):
        """Dialect-specific ``insert`` supporting ``on_conflict_do_update``."""
        dialect = self.session.get_bind().dialect.name
        if dialect == "sqlite":
            return sqlite.insert
        return postgresql.insert

    async def find(
        self,
        flt: Optional[VesselFilter] = None,
        sort: Sequence[SortSpec] = (),
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> list[ModelT]:
        """Find rows matching a filter with sort, skip and limit."""
        stmt = self._where(select(self.model), flt)

        for name, direction in sort:
            column = self._column(name)
            stmt = stmt.order_by(column.desc() if direction == "desc" else column.asc())

        if skip:
            stmt = stmt.offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_one(
        self,
        flt: Optional[VesselFilter] = None,
        sort: Sequence[SortSpec] = (),
    ) -> Optional[ModelT]:
        rows = await self.find(flt, sort=sort, limit=1)
        return rows[0] if rows else None

    async def count(self, flt: Optional[VesselFilter] = None) -> int:
        """Count rows matching a filter."""
        stmt = self._where(select(func.count()).select_from(self.model), flt)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def distinct(self, field_name: str, flt: Optional[VesselFilter] = None) -> list[Any]:
        """Distinct values of one field among matching rows."""
        column = self._column(field_name)
        stmt = self._where(select(column).distinct(), flt)
        result = await self.session.execute(stmt)
        return [row[0] for row in result.all()]

    async def count_by(self, field_name: str, flt: Optional[VesselFilter] = None) -> dict[Any, int]:
        """Row counts grouped by one field."""
        column = self._column(field_name)
        stmt = self._where(select(column, func.count()).group_by(column), flt)
        result = await self.session.execute(stmt)
        return {value: count for value, count in result.all()}

    async def summarize_by(
        self,
        field_name: str,
        latest_field: str,
        flt: Optional[VesselFilter] = None,
    ) -> dict[Any, dict[str, Any]]:
        """Per-group row count, latest value of ``latest_field`` and distinct MMSIs."""
        column = self._column(field_name)
        stmt = self._where(
            select(
                column,
                func.count(),
                func.max(self._column(latest_field)),
                func.count(distinct(self.model.mmsi)),
            ).group_by(column),
            flt,
        )
        result = await self.session.execute(stmt)
        return {
            value: {"count": count, "latest": latest, "unique_mmsis": unique}
            for value, count, latest, unique in result.all()
        }

    async def delete(self, flt: VesselFilter) -> int:
        """Delete matching rows; returns the number deleted."""
        stmt = self._where(delete(self.model), flt)
        result = await self.session.execute(stmt)
        return result.rowcount or 0


class CurrentVesselStore(_VesselStore[CurrentVessel]):
    """Current-state store keyed by MMSI."""

    model = CurrentVessel

    async def find_by_mmsi(self, mmsi: int, for_update: bool = False) -> Optional[CurrentVessel]:
        """Look up the current state of one vessel.

        ``for_update`` takes a row lock where the backend supports it.
        """
        stmt = (
            select(CurrentVessel)
            .where(CurrentVessel.mmsi == mmsi)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    def _upsert_statement(self, rows: list[dict[str, Any]]):
        insert = self._dialect_insert()
        stmt = insert(CurrentVessel).values(rows)
        update_columns = {
            name: stmt.excluded[name]
            for name in rows[0]
            if name not in ("mmsi", "update_count")
        }
        update_columns["update_count"] = CurrentVessel.update_count + 1
        update_columns["updated_at"] = func.now()
        return stmt.on_conflict_do_update(
            index_elements=["mmsi"],
            set_=update_columns,
        )

    async def upsert(self, values: dict[str, Any]) -> CurrentVessel:
        """Insert or overwrite the current state of one vessel.

        ``update_count`` starts at 1 and increments by exactly one per call.
        """
        row = dict(values)
        row["update_count"] = 1
        await self.session.execute(self._upsert_statement([row]))

        return await self.find_by_mmsi(row["mmsi"])

    async def bulk_upsert(
        self,
        rows: Iterable[dict[str, Any]],
        chunk_size: int = 500,
    ) -> BulkWriteResult:
        """Upsert many vessels, continuing past rows that fail.

        Each chunk is attempted as one statement; a failing chunk is
        retried row by row so only the offending rows are reported.
        """
        pending = [dict(r, update_count=1) for r in rows]
        outcome = BulkWriteResult()

        for start in range(0, len(pending), chunk_size):
            chunk = pending[start:start + chunk_size]
            try:
                async with self.session.begin_nested():
                    await self.session.execute(self._upsert_statement(chunk))
                outcome.upserted += len(chunk)
                continue
            except Exception as e:
                logger.warning(
                    f"Bulk upsert chunk at offset {start} failed, retrying per row: {e}"
                )

            for row in chunk:
                try:
                    async with self.session.begin_nested():
                        await self.session.execute(self._upsert_statement([row]))
                    outcome.upserted += 1
                except Exception as e:
                    outcome.errors.append(f"Failed to upsert vessel {row.get('mmsi')}: {e}")

        return outcome


class VesselLogStore(_VesselStore[VesselLog]):
    """Append-only archive of superseded vessel states."""

    model = VesselLog

    async def append(self, values: dict[str, Any]) -> VesselLog:
        """Persist one archive entry."""
        entry = VesselLog(**values)
        self.session.add(entry)
        await self.session.flush()
        return entry
