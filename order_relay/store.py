"""REST client for the table that stores relayed orders."""

import threading
from collections.abc import Callable

import requests

from .config import Settings


class StoreClient:
    """Thin wrapper around the store's REST resource.

    ``requests.Session`` is not guaranteed to be thread safe, so each thread
    using the client (the request threadpool, the sink) gets its own session.
    """

    def __init__(self, settings: Settings, session_factory: Callable[[], requests.Session] = requests.Session):
        self.url = settings.table_url
        self.timeout = settings.store_timeout_seconds
        self._headers = settings.store_headers()
        self._session_factory = session_factory
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        """The calling thread's session, created on first use."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            session.headers.update(self._headers)
            self._local.session = session
            with self._lock:
                self._sessions.append(session)
        return session

    def fetch_all(self) -> bytes:
        """Read every row of the table.

        Returns:
            bytes: The response body exactly as the store sent it.

        Raises:
            requests.RequestException: On transport errors or a non-2xx status.
        """
        response = self.session.get(self.url, params={"select": "*"}, timeout=self.timeout)
        response.raise_for_status()
        return response.content

    def upsert(self, record: dict[str, str]) -> requests.Response:
        """Write one flat record, asking for the created row back.

        The response is returned whatever its status; callers decide how to
        report a rejection.

        Raises:
            requests.RequestException: On transport errors.
        """
        return self.session.post(
            self.url,
            json=record,
            headers={"Prefer": "return=representation"},
            timeout=self.timeout,
        )

    def close(self) -> None:
        """Close every session opened by any thread."""
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
