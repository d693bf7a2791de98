from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from gameshop.config import settings

# SQLite connections are shared across FastAPI's threadpool
connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_engine(settings.database_url, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

def ping_db() -> bool:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return True
