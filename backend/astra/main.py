import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import config
from .database import engine, init_db
from .errors import register_error_handlers
from .routers.chat import router as chat_router
from .routers.github import router as github_router
from .routers.prompts import router as prompts_router
from .routers.sessions import router as sessions_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Initializing database...")
    await init_db()
    if not config.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY is not set; chat and analysis requests will fail with 401")
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(title="Astra Chat API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(chat_router)
app.include_router(sessions_router)
app.include_router(prompts_router)
app.include_router(github_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
