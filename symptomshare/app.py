# --- imports (top of symptomshare/app.py) ---
import json
import logging
import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from symptomshare.config import get_settings
from symptomshare.middleware.rate_limit import limiter
from symptomshare.middleware.tracing import TRACE_ID_CTX_VAR, TracingMiddleware
from symptomshare.models import init_db
from symptomshare.routes import matching_routes, symptoms_routes
from symptomshare.utils.exceptions import (
    error_body,
    handle_http_exception,
    handle_unhandled_exception,
    handle_validation_exception,
)

settings = get_settings()


# --- logging setup ---
class JsonFormatter(logging.Formatter):
    def format(self, record):  # type: ignore[override]
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "function": record.funcName,
            "message": record.getMessage(),
            "trace_id": TRACE_ID_CTX_VAR.get() or None,
        }
        return json.dumps(payload, ensure_ascii=False)


def configure_logging() -> logging.Logger:
    logger = logging.getLogger("symptomshare")
    logger.setLevel(logging.INFO)
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    return logger


logger = configure_logging()

# --- app setup ---
app = FastAPI(title="SymptomShare Backend", version="0.1.0")

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(TracingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(StarletteHTTPException, handle_http_exception)
app.add_exception_handler(RequestValidationError, handle_validation_exception)
app.add_exception_handler(Exception, handle_unhandled_exception)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    retry_after = 60
    reset_at = getattr(exc, "reset_time", None)
    if reset_at:
        retry_after = max(1, int(reset_at - time.time()))
    logger.info({
        "function": "rate_limit",
        "path": str(request.url.path),
        "client": get_remote_address(request),
    })
    return JSONResponse(
        status_code=429,
        headers={"Retry-After": str(retry_after)},
        content=error_body(request, 429, "Too many requests. Please wait a bit and try again."),
    )


@app.on_event("startup")
def _startup():
    init_db()
    if not settings.llm_configured:
        logger.warning("GEMINI_API_KEY is not set; keyword extraction, matching and suggestions use fallbacks")


app.include_router(matching_routes.router)
app.include_router(symptoms_routes.router)


@app.get("/api/health")
def health():
    return {"status": "ok", "llm_configured": get_settings().llm_configured}


__all__ = ["app", "configure_logging"]
