import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text
from sqlalchemy.orm import Session
from app.api.auth import router as auth_router
from app.api.breakdowns import router as breakdowns_router
from app.api.lifecycle import router as lifecycle_router
from app.api.users import router as users_router
from app.api.views import router as views_router
from app.core.config import Settings, settings as default_settings
from app.core.db import Base, build_engine, build_session_factory, get_db
from app.core.errors import BreakdownServiceError
from app.core.identity import IdentityProvider
from app.core.store import RecordStore

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application. The engine, store and identity provider are created
    once here and shared through `app.state`.
    """
    settings = settings or default_settings

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    engine = build_engine(settings.DATABASE_URL)
    session_factory = build_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s", settings.PROJECT_NAME)
        Base.metadata.create_all(bind=engine)
        yield
        logger.info("Shutting down %s", settings.PROJECT_NAME)
        engine.dispose()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Breakdown reporting, triage and resolution for reporters, managers and technicians.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.store = RecordStore(session_factory)
    app.state.identity = IdentityProvider.from_settings(settings, session_factory)

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(BreakdownServiceError)
    async def service_exception_handler(request: Request, exc: BreakdownServiceError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, **exc.extra, "request_id": getattr(request.state, "request_id", None)},
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error("Database failure: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"detail": "Service Unavailable: Database connection or operational failure", "request_id": getattr(request.state, "request_id", None)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error")
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal Server Error", "request_id": getattr(request.state, "request_id", None)},
        )

    @app.get("/health", tags=["system"])
    def health_check(db: Session = Depends(get_db)):
        try:
            db.execute(text("SELECT 1"))
            db_status = "ok"
        except SQLAlchemyError:
            db_status = "error"
        return {"status": "ok", "database": db_status}

    app.include_router(auth_router)
    app.include_router(breakdowns_router)
    app.include_router(lifecycle_router)
    app.include_router(users_router)
    app.include_router(views_router)
    return app


app = create_app()
