# FILE: asmr_studio/server.py
import logging
import os

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from asmr_studio.api.root import router as root_router
from asmr_studio.api.credits import router as credits_router
from asmr_studio.api.payments import router as payments_router
from asmr_studio.api.videos import router as videos_router
from asmr_studio.core.config import get_settings
from asmr_studio.core.database import init_models, dispose_engine

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("asmr-studio")

app = FastAPI(title="ASMR Video Studio API")

app.include_router(root_router)
app.include_router(credits_router)
app.include_router(payments_router)
app.include_router(videos_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(","),
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup():
    await init_models()
    settings = get_settings()
    logger.info(
        "Started: payment_env=%s storage=%s test_mode=%s",
        settings.payment.environment.value,
        "configured" if settings.storage.is_complete else "missing",
        settings.test_mode,
    )


@app.on_event("shutdown")
async def shutdown():
    await dispose_engine()
