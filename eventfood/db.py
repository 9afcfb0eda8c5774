from __future__ import annotations
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session
from .config import DATABASE_URL


def make_engine(url: str) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, echo=False)

    new_engine = create_engine(url, echo=False, connect_args={"check_same_thread": False, "timeout": 30})

    # SQLite ignores SELECT ... FOR UPDATE, so take the write lock when the
    # transaction begins instead of at the first write.
    @event.listens_for(new_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(new_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return new_engine


engine = make_engine(DATABASE_URL)

def init_db() -> None:
    SQLModel.metadata.create_all(engine)

def get_session() -> Session:
    return Session(engine)
