# dropserver/main.py
import asyncio
import logging
import sys
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import redis.asyncio as redis
from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates

from dropserver.aggregation import StatsRepository, run_refresh_loop
from dropserver.config import Settings, load_settings
from dropserver.database import build_engine, build_session_factory, init_models
from dropserver.errors import DropLoggerError, RateLimitExceeded
from dropserver.rate_limiter import RateLimiter
from dropserver.schemas import AggregatedStat, DropSubmission, SubmitResponse
from dropserver.validator import SubmissionValidator
from dropserver.writer import BatchWriter

logger = logging.getLogger("dropserver")

TEMPLATES_DIR = Path(__file__).parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def configure_logging(level="INFO"):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


# --- SHARED CONTEXT ---
@dataclass(frozen=True)
class AppContext:
    """Process-wide handles, read-only after start-up. Shared by every handler."""
    settings: Settings
    validator: SubmissionValidator
    limiter: RateLimiter
    writer: BatchWriter
    stats: StatsRepository
    engine: Optional[object] = None
    redis: Optional[object] = None

    async def close(self):
        if self.redis is not None:
            await self.redis.aclose()
        if self.engine is not None:
            await self.engine.dispose()


async def build_context(settings: Settings) -> AppContext:
    engine = build_engine(settings)
    await init_models(engine)
    session_factory = build_session_factory(engine)

    redis_client = redis.from_url(
        settings.redis_url,
        socket_timeout=settings.redis_timeout_seconds,
        socket_connect_timeout=settings.redis_timeout_seconds,
    )

    return AppContext(
        settings=settings,
        validator=SubmissionValidator(settings.plugin_marker, settings.max_quantity),
        limiter=RateLimiter(
            redis_client,
            max_requests=settings.max_requests_per_window,
            window_seconds=settings.rate_limit_window_seconds,
        ),
        writer=BatchWriter(session_factory),
        stats=StatsRepository(session_factory),
        engine=engine,
        redis=redis_client,
    )


def get_context(request: Request) -> AppContext:
    return request.app.state.context


async def require_plugin_client(
    user_agent: Optional[str] = Header(None),
    ctx: AppContext = Depends(get_context),
):
    # Runs before the body is touched and before any store access
    ctx.validator.check_client(user_agent)


# --- LIFECYCLE ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    owns_context = getattr(app.state, "context", None) is None
    if owns_context:
        settings = load_settings()
        configure_logging(settings.log_level)
        logger.info("Starting Drop Logger server...")
        app.state.context = await build_context(settings)

    ctx = app.state.context
    task = None
    if ctx.settings.stats_refresh_interval_seconds > 0:
        task = asyncio.create_task(
            run_refresh_loop(ctx.stats, ctx.settings.stats_refresh_interval_seconds)
        )
    yield

    if task is not None:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
    if owns_context:
        await ctx.close()


async def handle_drop_logger_error(request: Request, exc: DropLoggerError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected (%d): %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    app = FastAPI(title="Drop Logger", lifespan=lifespan)
    if context is not None:
        app.state.context = context
    app.add_exception_handler(DropLoggerError, handle_drop_logger_error)

    # --- API ENDPOINTS ---

    @app.get("/", response_class=HTMLResponse)
    async def show_dashboard(request: Request, ctx: AppContext = Depends(get_context)):
        rates = await ctx.stats.drop_rates()
        return templates.TemplateResponse(request, "dashboard.html", {"rates": rates})

    @app.post("/api/v1/submit", dependencies=[Depends(require_plugin_client)])
    async def submit_drops(batch: List[DropSubmission], ctx: AppContext = Depends(get_context)):
        """
        Ingest a batch from the plugin.
        One rate-limit increment per batch, keyed by the first reporter.
        """
        ctx.validator.check_batch(batch)

        user_hash = batch[0].user_hash
        count = await ctx.limiter.check_and_increment(user_hash)
        if ctx.limiter.is_exceeded(count):
            logger.warning("Rate limit exceeded for %s (%d)", user_hash, count)
            raise RateLimitExceeded()

        accepted = ctx.validator.accept(batch)
        if not accepted:
            return {"status": "No valid drops"}

        inserted = await ctx.writer.write(accepted)
        logger.info("Batch inserted %d of %d items for %s", inserted, len(batch), user_hash)
        return SubmitResponse(count=inserted)

    @app.get("/api/v1/stats", response_model=List[AggregatedStat])
    async def get_stats(ctx: AppContext = Depends(get_context)):
        return await ctx.stats.snapshot()

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
