from typing import Iterator

from sqlalchemy import event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import get_settings


def _create_engine() -> Engine:
    settings = get_settings()
    timeout = settings.store_timeout_secs
    url = make_url(settings.database_url)
    connect_args: dict[str, object] = {}
    engine_kwargs: dict[str, object] = {"pool_timeout": timeout}
    if url.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        # seconds to wait on a locked database before failing
        connect_args["timeout"] = timeout
        if url.database in (None, "", ":memory:"):
            # in-memory databases get a pool without a checkout queue
            del engine_kwargs["pool_timeout"]
    else:
        engine_kwargs["pool_pre_ping"] = True
    if url.get_backend_name() == "postgresql":
        connect_args["options"] = f"-c statement_timeout={int(timeout * 1000)}"
    from sqlalchemy import create_engine

    eng = create_engine(url, connect_args=connect_args, **engine_kwargs)
    if url.get_backend_name() == "sqlite":
        event.listen(eng, "connect", _enable_sqlite_pragmas)
    return eng


def _enable_sqlite_pragmas(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


engine = _create_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
