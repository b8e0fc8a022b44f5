from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from patient_portal.config import get_settings
from patient_portal.dependencies.services import get_backend_client_cached
from patient_portal.health import router as health_router
from patient_portal.mock_data_view import router as mock_data_router
from patient_portal.tools.appointment import router as appointment_router
from patient_portal.tools.availability import router as availability_router
from patient_portal.tools.calendar import router as calendar_router
from patient_portal.tools.directory import router as directory_router


def configure_logging() -> None:
    """Ensure application logs use the INFO level by default."""
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
    else:
        root_logger.setLevel(logging.INFO)


configure_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    settings_snapshot = settings.model_dump(exclude={"api_token"})
    logger.info("Application settings on startup: %s", settings_snapshot)

    client = get_backend_client_cached()
    logger.info(
        "Application startup complete (%s backend).",
        "mock" if client.use_mock_data else "live",
    )

    try:
        yield
    finally:
        logger.info("Closing portal backend client.")
        await client.close()
        logger.info("Application shutdown complete.")


settings = get_settings()
app = FastAPI(
    title=settings.app_name,
    lifespan=lifespan,
    redirect_slashes=False,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin).rstrip("/") for origin in settings.cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(appointment_router, prefix="/tools/appointments")
app.include_router(availability_router, prefix="/tools/availability")
app.include_router(calendar_router, prefix="/tools/calendar")
app.include_router(directory_router, prefix="/tools/directory")
app.include_router(health_router)
app.include_router(mock_data_router)
