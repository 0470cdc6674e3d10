from typing import Any

import requests


class NotionAPIError(Exception):
    """Non-2xx response from the Notion REST API."""

    def __init__(self, status: int, code: str, message: str):
        self.status = status
        self.code = code
        self.message = message
        super().__init__(f"Notion API {status} ({code}): {message}")

    @property
    def is_not_found(self) -> bool:
        return self.status == 404 or self.code == "object_not_found"

    @property
    def is_transient(self) -> bool:
        """Auth, rate-limit and server errors; re-running may succeed."""
        return self.status in (401, 403, 429) or self.status >= 500


class NotionClient:
    """Thin REST client for the Notion databases and pages endpoints."""

    API_URL = "https://api.notion.com/v1"
    NOTION_VERSION = "2022-06-28"
    PAGE_SIZE = 100

    def __init__(self, token: str, timeout: float = 30.0):
        self.token = token
        self.timeout = timeout
        self._session: requests.Session | None = None

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self.token}",
                "Notion-Version": self.NOTION_VERSION,
                "Content-Type": "application/json",
            }
        )
        return session

    def _request(
        self, method: str, path: str, payload: dict | None = None
    ) -> dict[str, Any]:
        """
        Send one request and return the decoded JSON body.

        Raises:
            NotionAPIError: On any non-2xx response.
            requests.RequestException: On connection failure or timeout.
        """
        response = self.session.request(
            method,
            f"{self.API_URL}/{path}",
            json=payload,
            timeout=self.timeout,
        )
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            raise NotionAPIError(
                response.status_code,
                body.get("code", "unknown"),
                body.get("message", response.text or "Unknown error"),
            )
        return response.json()

    def query_database(
        self, database_id: str, filter: dict | None = None
    ) -> list[dict[str, Any]]:
        """
        Return every page of a database, following pagination cursors.
        """
        pages: list[dict[str, Any]] = []
        payload: dict[str, Any] = {"page_size": self.PAGE_SIZE}
        if filter is not None:
            payload["filter"] = filter

        while True:
            body = self._request(
                "POST", f"databases/{database_id}/query", payload
            )
            pages.extend(body.get("results", []))
            if not body.get("has_more") or not body.get("next_cursor"):
                return pages
            payload["start_cursor"] = body["next_cursor"]

    def retrieve_page(self, page_id: str) -> dict[str, Any]:
        return self._request("GET", f"pages/{page_id}")

    def update_page(
        self, page_id: str, properties: dict[str, Any]
    ) -> dict[str, Any]:
        return self._request(
            "PATCH", f"pages/{page_id}", {"properties": properties}
        )

    def create_page(
        self, database_id: str, properties: dict[str, Any]
    ) -> dict[str, Any]:
        return self._request(
            "POST",
            "pages",
            {
                "parent": {"database_id": database_id},
                "properties": properties,
            },
        )
