"""FastAPI application factory."""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from workout_relay.api.routes import workouts
from workout_relay.config import get_settings
from workout_relay.inbox.reconciler import get_inbox
from workout_relay.scheduler.jobs import build_scheduler


def create_app() -> FastAPI:
    """Build and return the FastAPI app."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Same inbox the routes get, including test overrides
        inbox = app.dependency_overrides.get(get_inbox, get_inbox)()
        inbox.reload()

        scheduler = None
        if get_settings().inbox_reload_seconds > 0:
            scheduler = build_scheduler(inbox)
            scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown(wait=False)

    app = FastAPI(
        title="Workout Relay API",
        description="Received workout inbox",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(workouts.router, prefix="/workouts", tags=["workouts"])

    return app


# Module-level app instance for uvicorn
app = create_app()
