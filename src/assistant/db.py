from pathlib import Path
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine
from assistant.logging import logger


def create_db_engine(url: str) -> Engine:
    """Create an engine; SQLite engines are made shareable across worker threads."""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, echo=False)

    if parsed.database in (None, "", ":memory:"):
        # One shared connection, otherwise each thread sees its own empty DB
        return create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    db_path = Path(parsed.database)
    if not db_path.parent.exists():
        db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, echo=False, connect_args={"check_same_thread": False})


def init_db(engine: Engine):
    # Import all models here so SQLModel knows about them
    from assistant.models import customer, agent_log  # noqa: F401

    logger.info(f"Initializing database at {engine.url}")
    SQLModel.metadata.create_all(engine)
