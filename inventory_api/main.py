import logging
import os
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .config import Settings, load_settings
from .db import create_db_engine, create_session_factory, init_db
from .handlers import register_error_handlers
from .logs import configure_logging
from .middleware import BodySizeLimitMiddleware, RequestLoggingMiddleware
from .ratelimit import create_limiter
from .routers import categories, expenses, generic, products, roles, users

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    engine = create_db_engine(settings.database_url)
    # Create tables if not existing. Schema migrations are out of band.
    init_db(engine)

    app = FastAPI(title="Inventory Admin API")
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.limiter = limiter = create_limiter(settings.rate_limit_enabled)

    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.max_body_bytes, development=settings.development)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(generic.build_router(limiter, settings.login_rate_limit))
    for module in (users, roles, categories, products, expenses):
        app.include_router(module.router)

    os.makedirs(settings.upload_dir, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")

    @app.get("/health")
    async def health():
        return {"status": "UP", "message": "Server is running smoothly!"}

    logger.info("Application ready (environment=%s)", settings.environment)
    return app


app = create_app()
