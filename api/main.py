import logging
import os
from contextlib import asynccontextmanager

from database import init_db
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from routers import admin, status, submit
from worker import fail_interrupted_jobs, start_worker, stop_worker

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    _station_name = os.getenv("STATION_NAME", "Station")
    logger.info("Starting up %s delivery API", _station_name)
    init_db()
    fail_interrupted_jobs()
    start_worker()
    yield
    logger.info("Shutting down %s delivery API", _station_name)
    stop_worker()


app = FastAPI(title=os.getenv("STATION_NAME", "Station") + " Delivery API", lifespan=lifespan)

_hostname = os.environ.get("SERVER_HOSTNAME", "")
_origins = [f"https://{_hostname}"] if _hostname else ["http://localhost", "http://localhost:8000"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "X-Admin-Token"],
)

app.include_router(submit.router)
app.include_router(status.router)
app.include_router(admin.router)


@app.get("/health")
def health():
    return {"ok": True}
