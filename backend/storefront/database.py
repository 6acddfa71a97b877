import logging
from sqlalchemy import create_engine, URL
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from storefront.configuration import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def _build_engine():
    if settings.DATABASE_URL:
        if settings.DATABASE_URL.startswith("sqlite"):
            # Single shared connection so in-memory databases survive across sessions
            return create_engine(
                settings.DATABASE_URL,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=False,
            )
        return create_engine(settings.DATABASE_URL, pool_pre_ping=True, echo=False)

    # URL.create keeps the password out of stack traces
    database_url = URL.create(
        "mysql+pymysql",
        username=settings.DB_USER,
        password=settings.DB_PASSWORD,
        host=settings.DB_HOST,
        port=settings.DB_PORT,
        database=settings.DB_NAME,
        query={"charset": "utf8mb4"},
    )
    return create_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=False,
    )


engine = _build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# Dependency for endpoints
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create all storefront tables"""
    # Import all models to register them with Base
    from storefront.models import user, catalog, purchase, coupon  # noqa: F401
    Base.metadata.create_all(bind=engine)
