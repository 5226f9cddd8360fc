# backend/database.py
from sqlalchemy import create_engine, event
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from dotenv import load_dotenv

from config import settings

load_dotenv()

# 1. Database URL from the environment (PostgreSQL in production) or the local SQLite default
SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

# 2. Heroku/Railway style URLs use postgres://, SQLAlchemy requires postgresql://
if SQLALCHEMY_DATABASE_URL and SQLALCHEMY_DATABASE_URL.startswith("postgres://"):
    SQLALCHEMY_DATABASE_URL = SQLALCHEMY_DATABASE_URL.replace("postgres://", "postgresql://", 1)


def create_db_engine(url: str, enforce_foreign_keys: bool = True, connect_args=None, **kwargs):
    """Build an engine; SQLite gets same-thread disabled and FK enforcement."""
    is_sqlite = url.startswith("sqlite")
    connect_args = dict(connect_args or {})
    if is_sqlite:
        connect_args.setdefault("check_same_thread", False)

    db_engine = create_engine(url, connect_args=connect_args, **kwargs)

    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
    if is_sqlite and enforce_foreign_keys:
        @event.listens_for(db_engine, "connect")
        def _sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return db_engine


engine = create_db_engine(SQLALCHEMY_DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    # Import models so every table is registered on Base.metadata
    import models.users  # noqa: F401
    import models.article  # noqa: F401
    import models.product  # noqa: F401
    import models.order  # noqa: F401
    import models.log  # noqa: F401
    Base.metadata.create_all(bind=engine)
