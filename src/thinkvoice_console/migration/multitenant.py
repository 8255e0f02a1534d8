"""Single-tenant to multi-tenant schema migration.

Brings a legacy database (``users``, ``agents``, ``executions`` without any
tenant columns) to the multi-tenant schema: every legacy row ends up owned
by the seeded ``default`` tenant and legacy users become its admins.
"""

from sqlalchemy import JSON, Column, Integer, Text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from thinkvoice_console.common.models import Base
from thinkvoice_console.migration.runner import MigrationRunner
from thinkvoice_console.migration.steps import (
    MigrationStep,
    StepKind,
    execute,
    has_column,
    has_table,
    run_operations,
)

# Registers the tables on Base.metadata.
import thinkvoice_console.audit.models  # noqa: F401
import thinkvoice_console.tenants.models  # noqa: F401
import thinkvoice_console.workspace.models  # noqa: F401

MIGRATION_NAME = "multitenant_v1"

DEFAULT_TENANT_NAME = "Default Company"
DEFAULT_TENANT_SLUG = "default"
DEFAULT_SUB_ACCOUNT = "default-sub-account"
DEFAULT_TENANT_PLAN = "pro"

_DEFAULT_TENANT_ID = f"(SELECT id FROM tenants WHERE slug = '{DEFAULT_TENANT_SLUG}')"

def user_columns() -> list[Column]:
    return [
        Column("tenant_id", Integer),
        Column("password_hash", Text),
        Column("role", Text, server_default="agent"),
        Column("status", Text, server_default="active"),
    ]


def _create_table(name: str):
    async def action(conn: AsyncConnection) -> None:
        table = Base.metadata.tables[name]
        await conn.run_sync(lambda sync_conn: table.create(sync_conn, checkfirst=True))

    return action


async def seed_default_tenant(conn: AsyncConnection) -> None:
    await execute(
        conn,
        "INSERT INTO tenants "
        "(name, slug, bolna_sub_account_id, plan, status, settings, created_at) "
        "SELECT :name, :slug, :sub, :plan, 'active', '{}', CURRENT_TIMESTAMP "
        "WHERE NOT EXISTS (SELECT 1 FROM tenants WHERE slug = :slug)",
        name=DEFAULT_TENANT_NAME,
        slug=DEFAULT_TENANT_SLUG,
        sub=DEFAULT_SUB_ACCOUNT,
        plan=DEFAULT_TENANT_PLAN,
    )


async def backup_users(conn: AsyncConnection) -> None:
    if await has_table(conn, "users_backup"):
        return
    # Fails when there is no users table at all, which aborts the run.
    await execute(conn, "CREATE TABLE users_backup AS SELECT * FROM users")


async def add_user_columns(conn: AsyncConnection) -> None:
    missing = [c for c in user_columns() if not await has_column(conn, "users", c.name)]

    def add(op) -> None:
        for column in missing:
            op.add_column("users", column)

    if missing:
        await run_operations(conn, add)


async def backfill_users(conn: AsyncConnection) -> None:
    await execute(
        conn,
        f"UPDATE users SET tenant_id = {_DEFAULT_TENANT_ID}, "
        "role = 'admin', status = 'active' WHERE tenant_id IS NULL",
    )


def _add_tenant_fk(table: str):
    async def action(conn: AsyncConnection) -> None:
        await execute(
            conn,
            f"ALTER TABLE {table} ADD CONSTRAINT {table}_tenant_id_fkey "
            "FOREIGN KEY (tenant_id) REFERENCES tenants(id)",
        )

    return action


async def cast_agent_json(conn: AsyncConnection) -> None:
    if not await has_table(conn, "agents"):
        return

    def cast(op) -> None:
        for column in ("agent_config", "agent_prompts"):
            op.alter_column(
                "agents", column, type_=JSON(), postgresql_using=f"{column}::json"
            )

    await run_operations(conn, cast)


def _add_tenant_column(table: str):
    async def action(conn: AsyncConnection) -> None:
        if await has_table(conn, table) and not await has_column(conn, table, "tenant_id"):
            await run_operations(
                conn, lambda op: op.add_column(table, Column("tenant_id", Integer))
            )

    return action


def _backfill_tenant(table: str):
    async def action(conn: AsyncConnection) -> None:
        if not await has_column(conn, table, "tenant_id"):
            return
        await execute(
            conn,
            f"UPDATE {table} SET tenant_id = {_DEFAULT_TENANT_ID} WHERE tenant_id IS NULL",
        )

    return action


def build_steps() -> list[MigrationStep]:
    steps = [
        MigrationStep("create_super_admins", StepKind.PURE_CREATE, _create_table("super_admins")),
        MigrationStep("create_tenants", StepKind.PURE_CREATE, _create_table("tenants")),
        MigrationStep(
            "seed_default_tenant",
            StepKind.CONDITIONAL_BACKFILL,
            seed_default_tenant,
            description="Insert the default tenant only if absent",
        ),
        MigrationStep("backup_users", StepKind.GUARDED_ALTER, backup_users),
        MigrationStep("add_user_columns", StepKind.GUARDED_ALTER, add_user_columns),
        MigrationStep("backfill_users", StepKind.CONDITIONAL_BACKFILL, backfill_users),
        MigrationStep("users_tenant_fk", StepKind.SWALLOW_ON_CONFLICT, _add_tenant_fk("users")),
        MigrationStep(
            "cast_agent_json",
            StepKind.SWALLOW_ON_CONFLICT,
            cast_agent_json,
            dialects=("postgresql",),
            description="Convert text columns holding JSON to the json type",
        ),
    ]
    for table in ("agents", "executions"):
        steps += [
            MigrationStep(f"add_{table}_tenant_id", StepKind.GUARDED_ALTER, _add_tenant_column(table)),
            MigrationStep(f"backfill_{table}", StepKind.CONDITIONAL_BACKFILL, _backfill_tenant(table)),
            MigrationStep(f"{table}_tenant_fk", StepKind.SWALLOW_ON_CONFLICT, _add_tenant_fk(table)),
        ]
    steps += [
        MigrationStep("create_phone_numbers", StepKind.PURE_CREATE, _create_table("phone_numbers")),
        MigrationStep("create_campaigns", StepKind.PURE_CREATE, _create_table("campaigns")),
        MigrationStep("create_admin_audit_logs", StepKind.PURE_CREATE, _create_table("admin_audit_logs")),
    ]
    return steps


def multitenant_runner(engine: AsyncEngine) -> MigrationRunner:
    return MigrationRunner(engine, MIGRATION_NAME, build_steps())
