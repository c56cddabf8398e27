from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from account_service.core.config import settings

# connect_args is only needed for SQLite multithread safety
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

# Statement parameters stay out of error messages and logs (they can carry password hashes)
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    hide_parameters=True,
    connect_args=connect_args,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
