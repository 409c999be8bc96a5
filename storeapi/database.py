from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storeapi.core.config import DATABASE_URL
from storeapi.logger import get_logger

logger = get_logger(__name__)

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    connect_args=connect_args,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db(bind=engine):
    from storeapi.models.auth_models import Base
    from storeapi.models import product_models  # noqa: F401  registers products table

    Base.metadata.create_all(bind=bind)
    logger.info("Database tables ready")
