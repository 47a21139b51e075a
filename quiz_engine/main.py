from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quiz_engine.config import settings
from quiz_engine.database import test_supabase_connection
from quiz_engine.dependencies import get_engine
from quiz_engine.routes import attempts, results, sessions

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # timers are advisory; attempts stay in progress and resume on return
    get_engine().scheduler.cancel_all()
    logger.info("Countdown timers cancelled on shutdown")


app = FastAPI(title=settings.app_name, version="1.0.0",
              description="Quiz attempt engine for the campus community platform",
              lifespan=lifespan)

# CORS middleware for cross-origin requests (adjust origins for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers with prefixes and tags
app.include_router(sessions.router, prefix="/quizzes", tags=["Quiz Sessions"])
app.include_router(attempts.router, prefix="/attempts", tags=["Attempts"])
app.include_router(results.router, prefix="/results", tags=["Results"])

# Root endpoint
@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.app_name}", "version": app.version}

@app.get("/health")
async def health():
    return {"database": "ok" if test_supabase_connection(get_engine().store.db) else "unavailable"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
