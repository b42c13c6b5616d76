from __future__ import annotations

import psycopg


class CrawlError(RuntimeError):
    pass


class ConnectivityError(CrawlError):
    """Raised by repository clients when the session or server is gone."""


# Failures that force the worker to tear down its session and store handles.
CONNECTIVITY_ERRORS: tuple[type[BaseException], ...] = (ConnectivityError, psycopg.OperationalError)
