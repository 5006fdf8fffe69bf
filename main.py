import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.application.use_cases.notifications import build_notification_runtime
from app.config import get_settings
from app.infrastructure.database import SessionLocal, engine, initialize_database
from app.interfaces.api.routes import register_routes
from app.logging_config import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Prepare the database and the notification engine, then release them."""

    settings = get_settings()
    configure_logging(settings.log_level)
    initialize_database()

    runtime = build_notification_runtime(settings, SessionLocal)
    runtime.publisher.bind_loop(asyncio.get_running_loop())
    app.state.notification_runtime = runtime
    runtime.start()
    try:
        yield
    finally:
        runtime.shutdown()
        app.state.notification_runtime = None
        engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    app = FastAPI(title="Business Notifications API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


app = create_app()
