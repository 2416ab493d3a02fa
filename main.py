import os

import structlog
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import model.penalty_model  # ensures SQLAlchemy sees the Penalty class
from crud.penalty_crud import seed_sample_penalties
from database import Base, engine, SessionLocal
from router.penalty_router import router as penalty_router
from utils.logging_config import setup_logging

# ─── Load environment ───────────────────────────────────────────────────────────
load_dotenv()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
SEED_SAMPLE_DATA = os.getenv("SEED_SAMPLE_DATA", "false").lower() in ("1", "true", "yes")

setup_logging()
logger = structlog.get_logger(__name__)

# Create all tables
Base.metadata.create_all(bind=engine)

if SEED_SAMPLE_DATA:
    with SessionLocal() as db:
        added = seed_sample_penalties(db)
    logger.info("sample_penalties_seeded", added=added)

app = FastAPI(title="PCN Payment Portal")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(penalty_router, prefix="/penalties", tags=["penalties"])


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=True)
