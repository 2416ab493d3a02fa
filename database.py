# database.py

import os
from urllib.parse import quote_plus
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv

# ─── Load env vars ───────────────────────────────────────────────────────────────
load_dotenv()  # .env with DATABASE_URL, or DB_HOST, DB_PORT, DB_USER, DB_PASSWORD, DB_NAME

DB_USER     = os.getenv("DB_USER", "pcn")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_HOST     = os.getenv("DB_HOST", "localhost")
DB_PORT     = os.getenv("DB_PORT", "3306")
DB_NAME     = os.getenv("DB_NAME", "pcnportal")
SQL_ECHO    = os.getenv("SQL_ECHO", "false").lower() in ("1", "true", "yes")

# URL-encode any special chars in the password
password_escaped = quote_plus(DB_PASSWORD)

SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL") or (
    f"mysql+mysqlconnector://{DB_USER}:{password_escaped}"
    f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
)

if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    # one shared connection so an in-memory database survives across sessions
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        echo=SQL_ECHO,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        echo=SQL_ECHO,
        pool_pre_ping=True,
    )

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# Declarative base
Base = declarative_base()

# FastAPI dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
