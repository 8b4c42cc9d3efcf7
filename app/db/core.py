from app.core.config import settings
from sqlmodel import Session, create_engine


connect_args = {}
if settings.database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.database_url,
    connect_args=connect_args,
    echo=settings.debug,
    pool_pre_ping=True,
)


def get_session():
    """One session per request. Services commit, the context closes it."""
    with Session(engine) as session:
        yield session
