
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from eventpulse.core.config import settings

_is_sqlite = settings.DATABASE_URL.startswith("sqlite")

# SQLite is only used for local runs and tests; sessions are handed across
# Starlette's threadpool, so the same-thread check has to go.
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
)

if _is_sqlite:
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
