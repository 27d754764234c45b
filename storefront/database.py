# storefront/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
import os
from dotenv import load_dotenv

load_dotenv()

# 1. Database URL from the environment, SQLite locally
SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./storefront.db")


def normalize_database_url(url: str) -> str:
    # SQLAlchemy requires postgresql://, hosted providers still hand out postgres://
    if url and url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def make_engine(url: str, **kwargs):
    url = normalize_database_url(url)
    # check_same_thread is SQLite-only
    connect_args = {"check_same_thread": False} if "sqlite" in url else {}
    return create_engine(url, connect_args=connect_args, **kwargs)


engine = make_engine(SQLALCHEMY_DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    # Register every model on the metadata before creating tables
    import storefront.models.song  # noqa: F401
    import storefront.models.cart  # noqa: F401
    import storefront.models.order  # noqa: F401
    import storefront.models.purchase  # noqa: F401
    import storefront.models.log  # noqa: F401

    Base.metadata.create_all(bind=engine)
