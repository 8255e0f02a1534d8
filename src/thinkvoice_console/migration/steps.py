"""Migration step primitives.

Each step is a named unit with an explicit idempotency kind, so a re-run
either skips it (checkpoint) or executes it as a no-op.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncConnection


class StepKind(str, Enum):
    PURE_CREATE = "pure_create"
    """CREATE ... if not exists. Idempotent by construction."""

    GUARDED_ALTER = "guarded_alter"
    """Schema change preceded by an existence check."""

    CONDITIONAL_BACKFILL = "conditional_backfill"
    """UPDATE restricted to rows not migrated yet."""

    SWALLOW_ON_CONFLICT = "swallow_on_conflict"
    """Constraint or type change whose failure is logged and ignored."""


StepAction = Callable[[AsyncConnection], Awaitable[None]]


@dataclass(frozen=True)
class MigrationStep:
    name: str
    kind: StepKind
    action: StepAction
    dialects: Optional[tuple[str, ...]] = None
    description: str = ""

    def applies_to(self, dialect_name: str) -> bool:
        return self.dialects is None or dialect_name in self.dialects


async def has_table(conn: AsyncConnection, table: str) -> bool:
    return await conn.run_sync(lambda sync_conn: inspect(sync_conn).has_table(table))


async def has_column(conn: AsyncConnection, table: str, column: str) -> bool:
    def _check(sync_conn) -> bool:
        insp = inspect(sync_conn)
        if not insp.has_table(table):
            return False
        return any(c["name"] == column for c in insp.get_columns(table))

    return await conn.run_sync(_check)


async def execute(conn: AsyncConnection, sql: str, **params) -> None:
    await conn.execute(text(sql), params)


async def run_operations(conn: AsyncConnection, fn: Callable[[Operations], None]) -> None:
    """Run alembic schema operations against an open connection."""

    def _apply(sync_conn) -> None:
        fn(Operations(MigrationContext.configure(sync_conn)))

    await conn.run_sync(_apply)
