from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import psycopg
from pydantic import SecretStr

from notes_crawl_core.config import Settings


@dataclass(frozen=True)
class PostgresConfig:
    """
    Connection parameters for the crawl queue database. An explicit DSN wins
    over the individual POSTGRES_* parts.
    """

    dsn: str | None = None
    host: str | None = None
    port: int = 5432
    db: str | None = None
    user: str | None = None
    password: SecretStr | str | None = None
    schema: str = "public"

    @classmethod
    def from_settings(cls, settings: Settings) -> PostgresConfig:
        return cls(
            dsn=settings.pg_dsn,
            host=settings.postgres_host,
            port=settings.postgres_port,
            db=settings.postgres_db,
            user=settings.postgres_user,
            password=settings.postgres_password,
            schema=settings.queue_schema,
        )

    def build_dsn(self) -> str:
        if self.dsn:
            return self.dsn
        missing = [
            env
            for env, value in (
                ("POSTGRES_HOST", self.host),
                ("POSTGRES_DB", self.db),
                ("POSTGRES_USER", self.user),
                ("POSTGRES_PASSWORD", self.password),
            )
            if not value
        ]
        if missing:
            raise ValueError(f"Missing crawl queue database config: {', '.join(missing)} (or set PG_DSN)")
        password = self.password.get_secret_value() if isinstance(self.password, SecretStr) else self.password
        return f"postgresql://{self.user}:{password}@{self.host}:{self.port}/{self.db}"


def open_connection(dsn: str, *, schema: str = "public") -> psycopg.Connection:
    # Every session sees the queue tables unqualified and UTC timestamps.
    return psycopg.connect(dsn, options=f"-c search_path={schema} -c timezone=UTC")


@contextmanager
def connect(dsn: str, *, schema: str = "public") -> Iterator[psycopg.Connection]:
    with open_connection(dsn, schema=schema) as conn:
        yield conn
