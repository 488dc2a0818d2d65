# app/data/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.utils.settings import DATABASE_URL, LEDGER_WRITE_TIMEOUT_SECONDS


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        #sqlite w pamięci (testy/dev) - jedno połączenie dla wszystkich wątków
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    if url.startswith("postgresql"):
        #twardy limit na zapis do ledgera
        return {
            "pool_pre_ping": True,
            "connect_args": {
                "options": f"-c statement_timeout={LEDGER_WRITE_TIMEOUT_SECONDS * 1000}"
            },
        }
    return {"pool_pre_ping": True}


engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
