from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.reminders.config import settings

_connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,    # Validate connections before use
    connect_args=_connect_args,
    echo=False             # Set to True for SQL logging
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
