from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import streamlit as st
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from config import get_settings
from models import Base

POSTGRES_SCHEMES = {
    "postgres://": "postgresql+psycopg2://",
    "postgresql://": "postgresql+psycopg2://",
}
LOCAL_HOSTS = {"localhost", "127.0.0.1", ""}


def _database_url_from_secrets() -> str | None:
    # Streamlit Cloud exposes either a flat DATABASE_URL or a [database] table.
    try:
        candidates = [
            st.secrets.get("DATABASE_URL"),
            (st.secrets.get("database") or {}).get("url"),
        ]
    except Exception:
        return None
    for candidate in candidates:
        if candidate and str(candidate).strip():
            return str(candidate).strip()
    return None


def normalize_database_url(database_url: str) -> str:
    value = database_url.strip().strip("\"'")
    for prefix, driver in POSTGRES_SCHEMES.items():
        if value.startswith(prefix):
            value = driver + value[len(prefix):]
            break
    if not value.startswith("postgresql"):
        return value

    # Hosted Postgres needs TLS; local URLs stay untouched.
    parsed = urlparse(value)
    params = dict(parse_qsl(parsed.query, keep_blank_values=True))
    if (parsed.hostname or "").lower() in LOCAL_HOSTS or "sslmode" in params:
        return value
    params["sslmode"] = "require"
    return urlunparse(parsed._replace(query=urlencode(params)))


def build_engine(database_url: str) -> Engine:
    url = make_url(normalize_database_url(database_url))
    if url.get_backend_name() == "sqlite":
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


def resolve_database_url() -> str:
    return os.getenv("DATABASE_URL") or _database_url_from_secrets() or get_settings().database_url


@st.cache_resource
def get_engine() -> Engine:
    return build_engine(resolve_database_url())


@st.cache_resource
def get_session_factory() -> sessionmaker:
    return sessionmaker(bind=get_engine(), autoflush=False, autocommit=False, expire_on_commit=False)


@contextmanager
def db_session() -> Iterator[Session]:
    factory = get_session_factory()
    session: Session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_schema(engine: Engine | None = None) -> None:
    Base.metadata.create_all(bind=engine or get_engine())
