import asyncio
import logging
import random
import sys

import asyncpg
from fastapi import FastAPI
from loguru import logger
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from .alembic_helper import run_alembic_migrations
from .settings import giftcard_settings


_STANDARD_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "taskName"}


class _LoguruBridge(logging.Handler):
    """Route stdlib ``logging`` records (ledger modules, SQLAlchemy) into Loguru.

    Fields passed through ``extra=`` are bound onto the Loguru record and
    appended to the message as ``key=value`` pairs.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        fields = {k: v for k, v in vars(record).items() if k not in _STANDARD_RECORD_ATTRS}
        message = record.getMessage()
        if fields:
            message = message + " " + " ".join(f"{k}={v}" for k, v in fields.items())
        logger.bind(**fields).opt(depth=depth, exception=record.exc_info).log(level, message)


def setup_logging() -> None:
    """Configure Loguru for consistent, structured service logs."""
    settings = giftcard_settings()
    logger.remove()
    logger.configure(extra={"request_id": "-"})
    logger.add(
        sink=sys.stdout,
        level=settings.log_level.upper(),
        backtrace=False,
        diagnose=False,
        colorize=False,
        serialize=settings.environment != "local",
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
               "<level>{level: <8}</level> | "
               "{extra[request_id]} | "
               "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
               "<level>{message}</level>",
    )
    logging.basicConfig(handlers=[_LoguruBridge()], level=settings.log_level.upper(), force=True)
    logger.info("Logging configured for {}.", settings.service_name)


def setup_instrumentation(app: FastAPI) -> None:
    """Attach OpenTelemetry tracing to the FastAPI app. This function is idempotent."""
    settings = giftcard_settings()
    if not settings.otel_enabled:
        logger.info("OpenTelemetry disabled by configuration.")
        return
    if trace.get_tracer_provider() and not isinstance(trace.get_tracer_provider(), trace.NoOpTracerProvider):
        FastAPIInstrumentor.instrument_app(app, tracer_provider=trace.get_tracer_provider())
        return

    resource = Resource(attributes={SERVICE_NAME: settings.service_name})
    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_endpoint)))
    trace.set_tracer_provider(tracer_provider)
    FastAPIInstrumentor.instrument_app(app, tracer_provider=tracer_provider)
    app.state.tracer_provider = tracer_provider
    logger.info("OpenTelemetry instrumentation configured for {}.", settings.service_name)


async def _check_database_ready(dsn: str, max_retries: int = 5, base_delay: int = 2) -> None:
    """Poll the database connection until ready with exponential backoff and jitter."""
    if not dsn.startswith("postgresql"):
        return
    dsn = dsn.replace("postgresql+asyncpg://", "postgresql://", 1)

    for attempt in range(max_retries):
        try:
            conn = await asyncpg.connect(dsn=dsn)
            await conn.close()
            logger.info("Database connection successful.")
            return
        except (OSError, asyncpg.PostgresError) as e:
            total_wait = base_delay * (2 ** attempt) + random.uniform(0, 0.5)
            logger.warning(
                "Database not ready (attempt {}/{}): {}. Retrying in {:.2f}s...", attempt + 1, max_retries, e, total_wait
            )
            await asyncio.sleep(total_wait)
    raise RuntimeError("Database not ready after multiple attempts.")


async def init_service_startup(app: FastAPI) -> None:
    """Wait for the database, apply migrations and mark the app ready."""
    app.state.is_ready = False
    settings = giftcard_settings()
    logger.info("Initializing {} ({})...", settings.service_name, settings.environment)
    for key, value in settings.safe_dict().items():
        logger.info("    {}: {}", key, value)

    await _check_database_ready(settings.async_db_url)
    try:
        await run_alembic_migrations(settings.sync_db_url)
    except Exception as e:
        if "Target database is already up to date" not in str(e):
            logger.error("Alembic migrations failed: {}", e)
            raise
    app.state.is_ready = True
    logger.info("{} startup completed successfully.", settings.service_name)


async def shutdown_instrumentation(app: FastAPI) -> None:
    """Flush and stop span processors."""
    tracer_provider = getattr(app.state, "tracer_provider", None)
    if tracer_provider:
        tracer_provider.shutdown()
        logger.info("OpenTelemetry instrumentation shut down.")
