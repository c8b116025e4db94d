import json
import logging
import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from advisorhub.config import get_settings
from advisorhub.core.circuit_breaker import get_all_breakers
from advisorhub.core.metrics import APP_INFO, HTTP_REQUEST_DURATION, HTTP_REQUESTS
from advisorhub.core.rate_limit import find_config, get_client_ip, get_rate_limiter
from advisorhub.db.session import engine
from advisorhub.api.v1.router import api_router

VERSION = "0.1.0"


# ── JSON Structured Logging ──────────────────────────────────


class JSONFormatter(logging.Formatter):
    """Outputs log records as single-line JSON for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        audit = getattr(record, "audit_data", None)
        if audit:
            log["audit"] = audit
        if record.exc_info and record.exc_info[0]:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging():
    """JSON logs in production, readable lines when debugging."""
    settings = get_settings()

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if settings.debug else logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if settings.debug:
        handler.setFormatter(logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    else:
        handler.setFormatter(JSONFormatter())

    root.handlers = [handler]

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


logger = logging.getLogger("advisorhub")


def normalize_path(path: str) -> str:
    """Collapse UUID segments so metric labels stay low-cardinality."""
    if "/api/v1/" not in path:
        return path
    return "/".join("<id>" if len(p) > 20 and "-" in p else p for p in path.split("/"))


# ── Lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    APP_INFO.info({"version": VERSION, "name": get_settings().app_name})
    logger.info("AdvisorHub starting up")
    yield
    logger.info("AdvisorHub shutting down")
    await engine.dispose()


# ── App Factory ──────────────────────────────────────────────


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=(
            "## AdvisorHub: client, lead and trade advisory backend\n\n"
            "- **Clients**: records, search, plans and return performance\n"
            "- **Leads**: sales pipeline, stage transitions, CSV import\n"
            "- **Trades**: recommendations, advice broadcast, exits, timeline\n"
            "- **Dashboard**: accuracy, revenue, acquisition and plan mix\n"
            "- **Messaging**: trade emails and WhatsApp delivery\n\n"
            "### Authentication\n"
            "Every `/api/v1` endpoint requires a Bearer JWT issued by the "
            "auth provider in the `Authorization` header.\n\n"
            "### Rate Limits\n"
            "| Endpoint | Limit |\n"
            "|----------|-------|\n"
            "| `/api/v1/messaging` | 20 req/min |\n"
            "| `/api/v1/leads/import` | 5 req/min |\n"
            "| General API | 120 req/min |\n"
        ),
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "clients", "description": "Client CRUD, search, plans and performance"},
            {"name": "leads", "description": "Lead pipeline, stage changes and CSV import"},
            {"name": "trades", "description": "Trade recommendations, exits and timelines"},
            {"name": "dashboard", "description": "Advisor dashboard statistics"},
            {"name": "messaging", "description": "Email and WhatsApp delivery"},
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "X-Requested-With"],
    )

    # Request timing middleware (outermost)
    @app.middleware("http")
    async def timing_middleware(request: Request, call_next):
        start = time.monotonic()
        response: Response = await call_next(request)
        duration = time.monotonic() - start

        path = normalize_path(request.url.path)
        HTTP_REQUESTS.labels(
            method=request.method,
            path=path,
            status_code=str(response.status_code),
        ).inc()
        HTTP_REQUEST_DURATION.labels(method=request.method, path=path).observe(duration)
        return response

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        if "server" in response.headers:
            del response.headers["server"]
        return response

    @app.middleware("http")
    async def rate_limiting(request: Request, call_next):
        match = find_config(request.url.path)
        if not match:
            return await call_next(request)

        prefix, config = match
        key = f"{get_client_ip(request)}:{prefix}"
        limiter = get_rate_limiter()
        allowed, remaining = limiter.check(key, config)

        if not allowed:
            logger.warning("Rate limit exceeded for %s", key)
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests. Please try again later."},
                headers={
                    "Retry-After": str(config.window),
                    "X-RateLimit-Limit": str(config.calls),
                    "X-RateLimit-Remaining": "0",
                },
            )

        limiter.record(key)
        response: Response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(config.calls)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response

    app.include_router(api_router, prefix="/api/v1")

    # ── Prometheus metrics endpoint ──────────────────────────

    @app.get("/metrics")
    async def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # ── Health check ─────────────────────────────────────────

    @app.get("/health")
    async def health():
        checks = {"status": "ok"}
        overall_ok = True

        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except (SQLAlchemyError, OSError) as e:
            logger.error("Health check database error: %s", e)
            checks["database"] = f"error: {e}"
            overall_ok = False

        breakers = {}
        for cb in get_all_breakers():
            breakers[cb.name] = cb.state.value
            if cb.is_open:
                overall_ok = False
        checks["circuit_breakers"] = breakers

        checks["status"] = "ok" if overall_ok else "degraded"
        return checks

    return app


app = create_app()
