"""Merchant compliance engine service entry point.

Initializes the FastAPI application with:
- Structured logging
- Primary database for merchants, audits, rules, apps, alerts and requests
- Regulatory rule catalog, seeded into an empty rule table
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from merchant_compliance_engine import __version__
from merchant_compliance_engine.adapters.repositories import (
    MerchantRepository,
    PrivacyPolicyRepository,
    RegulatoryRuleRepository,
)
from merchant_compliance_engine.api.router import register_exception_handlers, router
from merchant_compliance_engine.core.services import RegulatoryService
from merchant_compliance_engine.database import close_database, create_schema, init_database, session_scope
from merchant_compliance_engine.observability import configure_logging, get_logger
from merchant_compliance_engine.settings import Settings, get_settings

logger = get_logger(__name__)

settings = get_settings()


async def seed_rule_catalog(config: Settings) -> int:
    """Seed the bundled rule catalog in its own transaction.

    Returns:
        Number of rules created; 0 when the table already held rules.
    """
    async with session_scope() as session:
        service = RegulatoryService(
            rule_repo=RegulatoryRuleRepository(session),
            merchant_repo=MerchantRepository(session),
            policy_repo=PrivacyPolicyRepository(session),
            catalog_dir=config.rule_catalog_dir,
        )
        return await service.seed_initial_rules()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle.

    Args:
        app: The FastAPI application instance.

    Yields:
        None
    """
    configure_logging(settings.log_level, settings.log_json)

    logger.info("Initializing primary database", service=settings.service_name)
    init_database(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        echo=settings.db_echo,
    )
    if settings.create_schema:
        await create_schema()
    if settings.seed_rules_on_startup:
        seeded = await seed_rule_catalog(settings)
        logger.info("Regulatory catalog ready", seeded=seeded)
    app.state.settings = settings

    logger.info("Compliance engine startup complete")

    yield

    logger.info("Shutting down compliance engine")
    await close_database()
    logger.info("Compliance engine shutdown complete")


def create_app() -> FastAPI:
    """Build the FastAPI application with routes and error handlers."""
    application = FastAPI(title=settings.service_name, version=__version__, lifespan=lifespan)
    register_exception_handlers(application)
    application.include_router(router, prefix="/api/v1")

    @application.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.service_name}

    return application


app: FastAPI = create_app()
