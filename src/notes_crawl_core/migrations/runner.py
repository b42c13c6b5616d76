from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import psycopg

logger = logging.getLogger(__name__)

SQL_DIR = Path(__file__).resolve().parent / "sql"


@dataclass(frozen=True)
class Migration:
    version: str
    path: Path

    def read_sql(self) -> str:
        return self.path.read_text(encoding="utf-8")


def discover_migrations(sql_dir: Path = SQL_DIR) -> list[Migration]:
    return [Migration(version=p.stem, path=p) for p in sorted(sql_dir.glob("*.sql"))]


def _prepare(conn: psycopg.Connection, schema: str) -> set[str]:
    conn.execute("set timezone to 'UTC'")
    conn.execute(f'create schema if not exists "{schema}"')
    conn.execute(f'set search_path to "{schema}"')
    conn.execute(
        """
        create table if not exists schema_migrations (
          version text primary key,
          applied_at timestamptz not null default now()
        )
        """
    )
    return {r[0] for r in conn.execute("select version from schema_migrations").fetchall()}


def apply_migrations(
    dsn: str,
    *,
    schema: str = "public",
    migrations: Iterable[Migration] | None = None,
) -> list[str]:
    """
    Create the crawl queue, template and attachment ledger tables in `schema`.
    Versions already recorded in schema_migrations are skipped, so reruns are
    no-ops. Returns the versions applied by this call.
    """
    pending = list(migrations) if migrations is not None else discover_migrations()

    applied: list[str] = []
    with psycopg.connect(dsn) as conn:
        done = _prepare(conn, schema)
        conn.commit()
        for mig in pending:
            if mig.version in done:
                continue
            # A failing file leaves neither its tables nor its version behind.
            with conn.transaction():
                conn.execute(mig.read_sql())
                conn.execute("insert into schema_migrations(version) values (%s)", (mig.version,))
            logger.info("Applied migration %s to schema %s", mig.version, schema)
            applied.append(mig.version)

    return applied
