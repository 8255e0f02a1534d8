"""FastAPI application factory for ThinkVoice Console."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from thinkvoice_console.common.config import get_settings
from thinkvoice_console.common.logging import setup_logging
from thinkvoice_console.common.schemas import HealthResponse

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from thinkvoice_console.deps import get_credential_service, get_db
        db = get_db()
        await db.init()
        await db.create_all()
        if settings.super_admin_email and settings.super_admin_password:
            async with db.get_session() as session:
                _, created = await get_credential_service().ensure_super_admin(
                    session,
                    settings.super_admin_email,
                    settings.super_admin_password,
                    settings.super_admin_name,
                )
            logger.info("Super-admin %s", "created" if created else "updated")
        yield
        # Shutdown
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from thinkvoice_console.auth.router import router as auth_router
    from thinkvoice_console.tenants.router import router as tenant_router
    from thinkvoice_console.impersonation.router import router as impersonation_router
    from thinkvoice_console.audit.router import router as audit_router
    from thinkvoice_console.voice.router import router as voice_router
    from thinkvoice_console.workspace.router import router as workspace_router
    from thinkvoice_console.workspace.router import webhook_router

    prefix = settings.api_prefix + "/api"
    app.include_router(auth_router, prefix=prefix)
    app.include_router(tenant_router, prefix=prefix)
    app.include_router(impersonation_router, prefix=prefix)
    app.include_router(audit_router, prefix=prefix)
    app.include_router(voice_router, prefix=prefix)
    app.include_router(workspace_router, prefix=prefix)
    app.include_router(webhook_router, prefix=prefix)

    return app
