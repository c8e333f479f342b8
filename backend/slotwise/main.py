"""Main FastAPI application for the Slotwise scheduler."""
from fastapi import FastAPI, Request

from slotwise.api.routes.availability import router as availability_router
from slotwise.api.routes.jobs import router as jobs_router
from slotwise.api.routes.schedule import router as schedule_router
from slotwise.api.routes.scheduled_tasks import router as scheduled_tasks_router
from slotwise.api.routes.task import router as task_router
from slotwise.core.config import settings
from slotwise.core.logging import configure_logging
from slotwise.core.middleware import RequestIDMiddleware
from slotwise.observability.client import init_opik
from slotwise.observability.tracing import trace

configure_logging(log_level=settings.log_level)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(RequestIDMiddleware)
app.include_router(task_router)
app.include_router(schedule_router)
app.include_router(scheduled_tasks_router)
app.include_router(availability_router)
app.include_router(jobs_router)


@app.on_event("startup")
async def startup_observability() -> None:
    init_opik()


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok", "service": settings.app_name}
