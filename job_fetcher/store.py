"""Persist canonical job records, one row per job_id.

Uniqueness lives in the database (``uq_jobs_job_id``), not in Python, so two
processes or two overlapping inserts can never store the same job twice.
Inserts never overwrite: a second record with a known job_id is rejected.
"""
from __future__ import annotations

import time
from datetime import datetime
from pathlib import Path
from typing import Callable

from sqlalchemy import DateTime, Engine, String, UniqueConstraint, create_engine, func, make_url, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from job_fetcher.config import Settings
from job_fetcher.errors import DuplicateError, FatalStartupError, StoreError
from job_fetcher.log import get_logger
from job_fetcher.models import JobRecord
from job_fetcher.retry import retry

log = get_logger(__name__)

REQUIRED_FIELDS: tuple[str, ...] = ("identifier", "title", "company_name", "location")


class Base(DeclarativeBase):
    pass


class StoredJob(Base):
    __tablename__ = "jobs"
    __table_args__ = (UniqueConstraint("job_id", name="uq_jobs_job_id"),)
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    job_id: Mapped[str] = mapped_column(String(255), nullable=False)
    job_title: Mapped[str] = mapped_column(String(500), nullable=False)
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    job_location: Mapped[str] = mapped_column(String(255), nullable=False)
    company_logo: Mapped[str | None] = mapped_column(String(2048))
    posting_date: Mapped[str | None] = mapped_column(String(64))
    employment_type: Mapped[str | None] = mapped_column(String(64))
    job_url: Mapped[str | None] = mapped_column(String(2048))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    @classmethod
    def from_record(cls, record: JobRecord) -> "StoredJob":
        return cls(
            job_id=record.identifier,
            job_title=record.title,
            company_name=record.company_name,
            job_location=record.location,
            company_logo=record.logo_url,
            posting_date=record.posting_date,
            employment_type=record.employment_type,
            job_url=record.apply_url,
        )


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        elif make_url(url).database:
            Path(make_url(url).database).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


class JobStore:
    def __init__(self, engine: Engine | str) -> None:
        self.engine = make_engine(engine) if isinstance(engine, str) else engine
        self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    def ping(self) -> None:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise StoreError(f"Store unreachable: {exc}") from exc

    def insert(self, record: JobRecord) -> StoredJob:
        """Insert ``record``; DuplicateError if its job_id is already stored."""
        missing = [f for f in REQUIRED_FIELDS if not getattr(record, f)]
        if missing:
            raise StoreError(
                f"Job is missing required field(s): {', '.join(missing)}",
                identifier=record.identifier,
            )

        row = StoredJob.from_record(record)
        with self._sessions() as session:
            try:
                session.add(row)
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                if self._exists(session, record.identifier):
                    raise DuplicateError(record.identifier) from exc
                raise StoreError(f"Constraint violated: {exc.orig}", identifier=record.identifier) from exc
            except SQLAlchemyError as exc:
                session.rollback()
                raise StoreError(f"Insert failed: {exc}", identifier=record.identifier) from exc
        return row

    @staticmethod
    def _exists(session: Session, identifier: str) -> bool:
        stmt = select(StoredJob.id).where(StoredJob.job_id == identifier).limit(1)
        return session.execute(stmt).first() is not None

    def get(self, identifier: str) -> StoredJob | None:
        with self._sessions() as session:
            return session.scalars(select(StoredJob).where(StoredJob.job_id == identifier)).first()

    def count(self) -> int:
        with self._sessions() as session:
            return session.scalar(select(func.count()).select_from(StoredJob)) or 0

    def dispose(self) -> None:
        self.engine.dispose()


def connect_store(settings: Settings, *, sleep: Callable[[float], None] = time.sleep) -> JobStore:
    """Open the store and make sure it answers; FatalStartupError otherwise."""
    try:
        store = JobStore(settings.database_url)
    except (SQLAlchemyError, ValueError, OSError) as exc:
        raise FatalStartupError(f"Bad DATABASE_URL: {exc}") from exc

    ping = retry(
        max_attempts=settings.store_connect_attempts,
        base_delay=2.0,
        retryable=(StoreError,),
        give_up=FatalStartupError,
        sleep=sleep,
    )(store.ping)
    ping()

    try:
        store.create_schema()
    except SQLAlchemyError as exc:
        raise FatalStartupError(f"Cannot create schema: {exc}") from exc
    log.info("Connected to store (%s)", store.engine.url.render_as_string(hide_password=True))
    return store
