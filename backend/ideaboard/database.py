import logging
from collections.abc import Generator
from contextlib import contextmanager

from sqlmodel import Session, SQLModel, create_engine

from ideaboard.config import settings

logger = logging.getLogger(__name__)

# Sessions are opened in the threadpool and used from the event loop (and from
# background generation runs), so SQLite must not pin connections to a thread.
_connect_args = (
    {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
)

engine = create_engine(settings.database_url, echo=False, connect_args=_connect_args)


def init_db() -> None:
    import ideaboard.models  # noqa: F401 — register all models with SQLModel metadata

    SQLModel.metadata.create_all(engine)
    logger.info(f"Database ready at {engine.url.render_as_string(hide_password=True)}")


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Session for work that runs outside a request, such as startup seeding."""
    with Session(engine) as session:
        yield session
