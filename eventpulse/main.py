import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from eventpulse.db.init_db import create_database, seed_sample_events
from eventpulse.db.base import Base
from eventpulse.db.session import engine, SessionLocal
from eventpulse.core.config import settings
from eventpulse.core.exceptions import BookingError
from eventpulse.api.v1.router import api_router
from eventpulse.schemas.common import HealthResponse
from eventpulse.services.presence import presence_channel

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


async def _advisory_sweep_loop() -> None:
    """Background task: clear seat selections nobody turned into a booking."""
    while True:
        try:
            count = presence_channel.expire_stale_selections()
            if count:
                logger.info("Expired %d stale seat selection(s).", count)
        except Exception:
            logger.exception("Error during seat selection sweep.")
        await asyncio.sleep(settings.ADVISORY_SWEEP_INTERVAL_SECONDS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Ensure DB exists and create tables
    create_database()
    Base.metadata.create_all(bind=engine)

    if settings.SEED_SAMPLE_DATA:
        db = SessionLocal()
        try:
            seed_sample_events(db)
        finally:
            db.close()

    presence_channel.bind_loop(asyncio.get_running_loop())
    sweep_task = asyncio.create_task(_advisory_sweep_loop())
    yield

    # Shutdown: cancel background task
    sweep_task.cancel()
    try:
        await sweep_task
    except asyncio.CancelledError:
        pass


from fastapi.middleware.cors import CORSMiddleware

app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(api_router, prefix=settings.API_V1_STR)

# Ticket artifacts written by FileTicketArtifactGenerator
app.mount(
    settings.TICKET_ARTIFACT_URL_PREFIX,
    StaticFiles(directory=settings.TICKET_ARTIFACT_DIR, check_dir=False),
    name="tickets",
)


@app.get(f"{settings.API_V1_STR}/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok", message="Server is running")
