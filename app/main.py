import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import BOOTSTRAP_ON_STARTUP, LOG_LEVEL, PATIENT_DATA_DIR
from app.database import connect_store
from app.errors import ApiError, api_error_handler
from app.routers import clinical, patients
from app.services.bootstrap import bootstrap_databases

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Legacy Patient API...")
    app.state.store = None
    app.state.bootstrap_report = None

    store = await connect_store()
    if store is None:
        logger.error("No Cloudant connection; API endpoints will answer 500")
    else:
        app.state.store = store
        if BOOTSTRAP_ON_STARTUP:
            app.state.bootstrap_report = await bootstrap_databases(store, PATIENT_DATA_DIR)
        else:
            logger.info("Bootstrap import disabled")

    yield

    if store is not None:
        await store.close()
    logger.info("Legacy Patient API shut down")


app = FastAPI(
    title="Legacy Patient API",
    description="Cloudant-backed patient records in the legacy field layout",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)
app.add_exception_handler(ApiError, api_error_handler)

app.include_router(patients.router)
app.include_router(clinical.router)
