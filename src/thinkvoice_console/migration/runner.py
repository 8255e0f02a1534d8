"""Checkpointed, step-by-step migration runner."""

from dataclasses import dataclass, field

from sqlalchemy import Column, DateTime, MetaData, String, Table, delete, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from thinkvoice_console.common.exceptions import MigrationStepFailed
from thinkvoice_console.common.logging import get_logger
from thinkvoice_console.common.models import utcnow
from thinkvoice_console.migration.steps import MigrationStep, StepKind

logger = get_logger("migration")

checkpoint_metadata = MetaData()

checkpoints = Table(
    "migration_checkpoints",
    checkpoint_metadata,
    Column("migration", String(100), primary_key=True),
    Column("step", String(100), primary_key=True),
    Column("completed_at", DateTime(timezone=True), nullable=False),
)

APPLIED = "applied"
SKIPPED = "skipped"
SWALLOWED = "swallowed"
NOT_APPLICABLE = "not_applicable"


@dataclass
class StepOutcome:
    step: str
    status: str
    error: str = ""


@dataclass
class MigrationReport:
    migration: str
    outcomes: list[StepOutcome] = field(default_factory=list)

    def steps_with(self, status: str) -> list[str]:
        return [o.step for o in self.outcomes if o.status == status]

    @property
    def applied(self) -> list[str]:
        return self.steps_with(APPLIED)

    @property
    def skipped(self) -> list[str]:
        return self.steps_with(SKIPPED)


class MigrationRunner:
    """Runs steps in order, each in its own transaction.

    A completed step is recorded in ``migration_checkpoints``; with
    ``resume=True`` recorded steps are skipped. A failing
    ``swallow_on_conflict`` step is logged and counts as completed. Any other
    failure raises ``MigrationStepFailed`` and stops the run.
    """

    def __init__(self, engine: AsyncEngine, name: str, steps: list[MigrationStep]):
        self.engine = engine
        self.name = name
        self.steps = steps

    async def _ensure_checkpoint_table(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(checkpoint_metadata.create_all)

    async def completed_steps(self) -> set[str]:
        await self._ensure_checkpoint_table()
        async with self.engine.connect() as conn:
            result = await conn.execute(
                select(checkpoints.c.step).where(checkpoints.c.migration == self.name)
            )
            return {row[0] for row in result}

    async def _record(self, step: str) -> None:
        async with self.engine.begin() as conn:
            await conn.execute(
                delete(checkpoints).where(
                    checkpoints.c.migration == self.name, checkpoints.c.step == step
                )
            )
            await conn.execute(
                insert(checkpoints).values(
                    migration=self.name, step=step, completed_at=utcnow()
                )
            )

    async def run(self, resume: bool = True) -> MigrationReport:
        await self._ensure_checkpoint_table()
        done = await self.completed_steps() if resume else set()
        dialect = self.engine.dialect.name
        report = MigrationReport(migration=self.name)

        for step in self.steps:
            if step.name in done:
                logger.info("[%s] %s: already completed, skipping", self.name, step.name)
                report.outcomes.append(StepOutcome(step.name, SKIPPED))
                continue
            if not step.applies_to(dialect):
                logger.info("[%s] %s: not applicable to %s", self.name, step.name, dialect)
                report.outcomes.append(StepOutcome(step.name, NOT_APPLICABLE))
                await self._record(step.name)
                continue

            logger.info("[%s] %s (%s): running", self.name, step.name, step.kind.value)
            try:
                async with self.engine.begin() as conn:
                    await step.action(conn)
            except SQLAlchemyError as exc:
                statement = getattr(exc, "statement", None) or ""
                if step.kind is StepKind.SWALLOW_ON_CONFLICT:
                    logger.warning(
                        "[%s] %s: ignored failure: %s", self.name, step.name, exc,
                        extra={"migration": self.name, "step": step.name},
                    )
                    report.outcomes.append(StepOutcome(step.name, SWALLOWED, str(exc)))
                else:
                    logger.error(
                        "[%s] %s: failed on statement %r: %s",
                        self.name, step.name, statement, exc,
                        extra={"migration": self.name, "step": step.name},
                    )
                    raise MigrationStepFailed(step.name, statement, str(exc)) from exc
            else:
                report.outcomes.append(StepOutcome(step.name, APPLIED))
            await self._record(step.name)

        logger.info(
            "[%s] finished: %d applied, %d skipped",
            self.name, len(report.applied), len(report.skipped),
        )
        return report
