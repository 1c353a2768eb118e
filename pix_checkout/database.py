from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from pix_checkout.config import load_settings

DATABASE_URL = load_settings().database_url

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
Base = declarative_base()
