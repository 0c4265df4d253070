"""
Application factory with background task and mail lifecycle management.
"""

import asyncio
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from backend.config import VERSION, Settings, settings as default_settings
from backend.http.errors import register_exception_handlers
from backend.infrastructure.background.supervisor import TaskSupervisor
from backend.infrastructure.observability.logging import get_logger, log_request, setup_logging
from backend.routes import health
from backend.services.mailer import Mailer, SMTPTransport, TemplateCatalog, Transport

logger = get_logger(__name__)


def create_app(settings: Settings | None = None, transport: Transport | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use instead of the environment-derived ones.
        transport: Mail transport to use instead of SMTP (tests, local dev).
    """
    cfg = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application starting", environment=cfg.environment, debug=cfg.debug)

        mail_config = cfg.get_mail_config()
        mail_transport = transport
        if mail_transport is None:
            smtp = SMTPTransport(
                mail_config["host"],
                mail_config["port"],
                mail_config["username"],
                mail_config["password"],
                timeout=mail_config["timeout"],
            )
            if cfg.SMTP_VERIFY_ON_STARTUP:
                try:
                    await asyncio.to_thread(smtp.verify)
                except Exception as e:
                    logger.error("Failed to connect to SMTP server", error=str(e))
                    raise
            mail_transport = smtp

        app.state.settings = cfg
        app.state.supervisor = TaskSupervisor()
        app.state.mailer = Mailer(
            mail_transport,
            mail_config["sender"],
            TemplateCatalog(),
            max_attempts=mail_config["max_attempts"],
            backoff=mail_config["backoff"],
        )
        logger.info("All services initialized successfully", services=["supervisor", "mailer"])

        yield

        logger.info(
            "Application shutting down",
            background_tasks=app.state.supervisor.in_flight,
        )
        drained = await asyncio.to_thread(
            app.state.supervisor.wait, cfg.SHUTDOWN_TIMEOUT_SECONDS
        )
        if drained:
            logger.info("Background tasks completed", **app.state.supervisor.stats())
        else:
            logger.warning(
                "Shutdown timeout reached with background tasks still running",
                **app.state.supervisor.stats(),
            )

    app = FastAPI(
        title="Backend Template",
        description="HTTP API skeleton with supervised background tasks and retrying mail",
        version=VERSION,
        lifespan=lifespan,
    )

    app.include_router(health.router)
    register_exception_handlers(app)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log HTTP requests with timing."""
        start_time = time.time()
        response = await call_next(request)
        process_time = (time.time() - start_time) * 1000

        log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(process_time, 2),
        )
        return response

    return app


setup_logging(log_level=default_settings.LOG_LEVEL)
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=default_settings.PORT)
