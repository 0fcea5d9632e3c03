from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.core.config import settings
from app.core.locks import LocalDoctorLocks, RedisDoctorLocks
from app.core.logger import logger
from app.core.redis import RedisClient
from app.db.session import Database
from app.middleware.log_middleware import LogMiddleware
from app.services.notification_service import EmailNotifier

@asynccontextmanager
async def lifespan(app: FastAPI):
    db = Database(settings.DATABASE_URL, echo=settings.DB_ECHO)
    db.connect()
    if settings.DB_CREATE_ALL:
        await db.create_all()
    app.state.db = db

    redis_client = None
    if settings.LOCK_BACKEND == "redis":
        redis_client = RedisClient(settings.REDIS_URL)
        app.state.locks = RedisDoctorLocks(
            redis_client,
            timeout=settings.LOCK_TIMEOUT_SECONDS,
            blocking_timeout=settings.LOCK_BLOCKING_TIMEOUT_SECONDS,
        )
    else:
        app.state.locks = LocalDoctorLocks()
    logger.info(f"Using {settings.LOCK_BACKEND} schedule locks")

    app.state.notifier = EmailNotifier(settings)

    yield

    if redis_client is not None:
        await redis_client.close()
    await db.disconnect()

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(LogMiddleware)

@app.get("/")
async def root():
    return {"message": "ClinixNote API is running"}

from app.api.api import api_router
app.include_router(api_router, prefix=settings.API_V1_STR)
