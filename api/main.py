# api/main.py
from dotenv import load_dotenv
import os

env = os.getenv("APP_ENV", "local")
if env == "local":
    load_dotenv(".env.local")
else:
    load_dotenv(".env")

from fastapi import FastAPI
from contextlib import asynccontextmanager
import logging
from database.db import init_db
from fastapi.middleware.cors import CORSMiddleware

from api.routers import (
    health,
    cron,
    papers,
    compare,
    llm,
    sources,
    user,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)
logger.info(f"🔧 Loaded environment: {env}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting Ronbun backend: initializing DB")
    try:
        init_db()
    except Exception as e:
        logger.error(f"❌ Failed to initialize database: {e}", exc_info=True)
        raise
    yield
    logger.info("🛑 Shutting down Ronbun backend")


app = FastAPI(
    title="Ronbun API",
    version="0.1.0",
    description="Backend API for the Ronbun arXiv feed.",
    lifespan=lifespan
)

# CORS Configuration
origins = []
if env == "local":
    origins = ["http://localhost:3000", "http://localhost:5173"]
else:
    origins_str = os.getenv("ALLOWED_ORIGINS", "")
    origins = [origin.strip() for origin in origins_str.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(health.router)
app.include_router(cron.router, prefix="/cron", tags=["Jobs"])
app.include_router(papers.router, prefix="/papers", tags=["Papers"])
app.include_router(compare.router, tags=["Papers"])
app.include_router(llm.router, tags=["LLM"])
app.include_router(sources.router, tags=["Sources"])
app.include_router(user.router, prefix="/user", tags=["User"])


@app.get("/")
async def root():
    return {"message": "Ronbun backend running 🚀"}
