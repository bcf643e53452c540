from contextlib import asynccontextmanager
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.errors import register_exception_handlers
from app.api.routes import router
from app.core.config import settings
from app.core.logging import configure_logging
from app.services.google_clients import init_google_clients

configure_logging()
logger = structlog.get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("app_starting", environment=settings.ENVIRONMENT, upload_dir=settings.UPLOAD_DIR)
    app.state.google_clients = init_google_clients(settings)
    yield
    logger.info("app_shutting_down")

# Initialize the FastAPI application
app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# The registration form is served from another origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")
register_exception_handlers(app)
