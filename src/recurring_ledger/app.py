from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI

from recurring_ledger.api.routes import accounts, jobs, webhook
from recurring_ledger.core import settings
from recurring_ledger.core.configuration import JobSettings, load_job_settings
from recurring_ledger.domain.paths import USER_SUBCOLLECTIONS
from recurring_ledger.integration.store import DocumentStore, init_store
from recurring_ledger.integration.users import UserDirectory
from recurring_ledger.logger import get_logger, setup_logging
from recurring_ledger.services.account_cleanup import AccountCleanup, PartnershipPolicy
from recurring_ledger.services.eraser import BatchEraser
from recurring_ledger.services.recurrence import RecurrenceMaterializer
from recurring_ledger.services.scheduler import DailyScheduler

logger = get_logger(__name__)


@dataclass
class Services:
    store: DocumentStore
    users: UserDirectory
    materializer: RecurrenceMaterializer
    account_cleanup: AccountCleanup


def build_services(store: DocumentStore, job_settings: JobSettings) -> Services:
    users = UserDirectory(store)
    materializer = RecurrenceMaterializer(
        store,
        users,
        timezone=job_settings.timezone,
        collections=job_settings.transaction_collections,
        discovery=job_settings.discovery,
    )
    account_cleanup = AccountCleanup(
        store,
        BatchEraser(store, page_size=job_settings.delete_page_size),
        policy=PartnershipPolicy(job_settings.partnership_policy),
        collections=USER_SUBCOLLECTIONS + job_settings.transaction_collections,
    )
    return Services(
        store=store,
        users=users,
        materializer=materializer,
        account_cleanup=account_cleanup,
    )


def create_app() -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Initializing services...")
        settings.log_environment()

        job_settings = load_job_settings()
        services = build_services(init_store(job_settings), job_settings)

        app.state.store = services.store
        app.state.users = services.users
        app.state.materializer = services.materializer
        app.state.account_cleanup = services.account_cleanup

        scheduler: DailyScheduler | None = None
        if job_settings.scheduler_enabled:
            scheduler = DailyScheduler(
                services.materializer.materialize_due_recurrences,
                at=job_settings.schedule_time,
                timezone=job_settings.timezone,
            )
            scheduler.start()
        else:
            logger.info("SCHEDULER_ENABLED is off. Recurring runs only happen on request.")
        app.state.scheduler = scheduler

        logger.info("Services initialized.")
        yield
        if scheduler:
            await scheduler.stop()
        logger.info("Service shutting down.")

    app = FastAPI(title="Recurring Ledger", lifespan=lifespan)

    app.include_router(jobs.router)
    app.include_router(webhook.router)
    app.include_router(accounts.router)

    return app


app = create_app()
