"""FastAPI application entry point."""
from fastapi import FastAPI

from plan_sync.logging_config import configure_logging
from plan_sync.routers import health, matching, plans


configure_logging()

app = FastAPI(title="Plan Sync API")


# Include routers
app.include_router(health.router)
app.include_router(matching.router)
app.include_router(plans.router)


if __name__ == "__main__":
    import uvicorn

    from plan_sync.config import get_settings

    settings = get_settings()
    uvicorn.run("plan_sync.main:app", host=settings.app_host, port=settings.app_port)
