import logging
from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
from config import settings
from database import get_db
from errors import http_error_handler, unhandled_error_handler, validation_error_handler
from rate_limit import limiter
from routers import ai_router, billing_router, events_router, mood_router, users_router

# Tracing
from opentelemetry import trace
from opentelemetry.exporter.cloud_trace import CloudTraceSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.propagate import set_global_textmap
from opentelemetry.propagators.cloud_trace_propagator import (
    CloudTraceFormatPropagator,
)
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

# Rate Limiting
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

# Configure Logging
logging.basicConfig(level=logging.DEBUG if settings.DEBUG else logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Daily Mood API", version="1.0.0")

# --- Setup Tracing ---
if settings.ENABLE_TRACING:
    set_global_textmap(CloudTraceFormatPropagator())
    tracer_provider = TracerProvider()
    tracer_provider.add_span_processor(BatchSpanProcessor(CloudTraceSpanExporter()))
    trace.set_tracer_provider(tracer_provider)
    FastAPIInstrumentor.instrument_app(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

app.include_router(users_router.router)
app.include_router(mood_router.router)
app.include_router(ai_router.router)
app.include_router(billing_router.router)
app.include_router(events_router.router)


@app.get("/health")
def health_check():
    return {"status": "healthy"}


@app.get("/api/status")
def system_status(db: Session = Depends(get_db)):
    checks = {
        "stripe": "configured" if settings.STRIPE_API_KEY else "not_configured",
        "llm": settings.LLM_MODEL,
    }
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception:
        logger.error("Database health check failed", exc_info=True)
        checks["database"] = "unhealthy"

    status = "healthy" if checks["database"] == "healthy" else "unhealthy"
    return JSONResponse(
        status_code=200 if status == "healthy" else 503,
        content={"status": status, "version": app.version, "checks": checks},
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )


if __name__ == "__main__":
    import uvicorn
    # Listen on 0.0.0.0 because we are inside a container
    uvicorn.run(app, host="0.0.0.0", port=8080)
