"""
Smartsheet API client using httpx.
Bearer-token authentication and the row operations the sync core needs.

Every call is one round trip. Nothing is cached and nothing is retried:
a failed request raises RemoteError (reads) or RemoteRejectedError
(mutations) carrying the status code and the store's payload verbatim.
"""
from typing import Any

import httpx

from config import (
    ATTACHMENT_PAGE_SIZE,
    NOT_FOUND_ERROR_CODE,
    REQUEST_TIMEOUT_SECONDS,
    SMARTSHEET_API_BASE,
)
from core.models import (
    Attachment,
    DeleteResult,
    InsertRequest,
    InsertResult,
    Row,
    Snapshot,
    UpdateRequest,
    UpdateResult,
)
from lib.common import log
from lib.errors import ConfigurationError, RemoteError, RemoteRejectedError


def _payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _is_not_found(response: httpx.Response) -> bool:
    if response.status_code != 404:
        return False
    body = _payload(response)
    return isinstance(body, dict) and body.get("errorCode") == NOT_FOUND_ERROR_CODE


class SmartsheetClient:
    """Wrapper around the Smartsheet REST API for one tracker sheet."""

    def __init__(
        self,
        api_token: str,
        sheet_id: str,
        base_url: str = SMARTSHEET_API_BASE,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            api_token: Smartsheet API access token
            sheet_id: Id of the sheet every call targets
            base_url: API root (default: production 2.0 endpoint)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)

        Raises:
            ConfigurationError: If the token or sheet id is blank
        """
        if not api_token or not str(api_token).strip():
            raise ConfigurationError("Smartsheet API token is required")
        if not sheet_id or not str(sheet_id).strip():
            raise ConfigurationError("Smartsheet sheet id is required")
        self.sheet_id = str(sheet_id).strip()
        self._http = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {api_token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "SmartsheetClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # === Transport ===

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        log("SMARTSHEET", method, path)
        try:
            return self._http.request(method, path, params=params, json=json)
        except httpx.HTTPError as e:
            raise RemoteError(f"{method} {path} failed: {e}") from e

    def _read(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        response = self._send("GET", path, params=params)
        if response.is_error:
            raise RemoteError(
                f"GET {path} returned {response.status_code}",
                status=response.status_code,
                payload=_payload(response),
            )
        body = _payload(response)
        if not isinstance(body, dict):
            raise RemoteError(f"GET {path} returned a non-JSON body", status=response.status_code, payload=body)
        return body

    def _mutate(
        self,
        method: str,
        path: str,
        accept: tuple[str, ...] = ("SUCCESS",),
        **kwargs: Any,
    ) -> dict[str, Any]:
        response = self._send(method, path, **kwargs)
        body = _payload(response)
        if response.is_error:
            raise RemoteRejectedError(
                f"{method} {path} returned {response.status_code}",
                status=response.status_code,
                payload=body,
            )
        if not isinstance(body, dict) or body.get("message") not in accept:
            raise RemoteRejectedError(
                f"{method} {path} did not succeed",
                status=response.status_code,
                payload=body,
            )
        return body

    # === Sheet ===

    def fetch_sheet(self) -> Snapshot:
        """Fetch all columns and rows of the configured sheet."""
        return Snapshot.from_api(self._read(f"/sheets/{self.sheet_id}"))

    # === Rows ===

    def insert_row(self, request: InsertRequest) -> InsertResult:
        """Add one row next to its sibling (or at the bottom)."""
        body = self._mutate("POST", f"/sheets/{self.sheet_id}/rows", json=request.to_api())
        result = body.get("result")
        if isinstance(result, list):
            result = result[0] if result else None
        if not isinstance(result, dict) or "id" not in result:
            raise RemoteRejectedError("insert response carried no row id", payload=body)
        row = Row.from_api(result)
        return InsertResult(row_id=row.id, position=row.position or None, row=row)

    def update_rows(self, requests: list[UpdateRequest]) -> UpdateResult:
        """
        Update rows in one batch. Rows the store refuses come back in
        `failed` rather than failing the whole batch.
        """
        body = self._mutate(
            "PUT",
            f"/sheets/{self.sheet_id}/rows",
            params={"allowPartialSuccess": "true"},
            accept=("SUCCESS", "PARTIAL_SUCCESS"),
            json=[r.to_api() for r in requests],
        )
        updated = [r["id"] for r in body.get("result") or [] if isinstance(r, dict) and "id" in r]
        failed = list(body.get("failedItems") or [])
        return UpdateResult(updated=updated, failed=failed)

    def delete_rows(self, row_ids: list[int]) -> DeleteResult:
        """
        Delete rows in one request. Ids that no longer exist are ignored,
        so repeating a delete is harmless.
        """
        if not row_ids:
            return DeleteResult()
        path = f"/sheets/{self.sheet_id}/rows"
        response = self._send(
            "DELETE",
            path,
            params={"ids": ",".join(str(i) for i in row_ids), "ignoreRowsNotFound": "true"},
        )
        if _is_not_found(response):
            return DeleteResult()
        body = _payload(response)
        if response.is_error or not isinstance(body, dict) or body.get("message") != "SUCCESS":
            raise RemoteRejectedError(
                f"DELETE {path} returned {response.status_code}",
                status=response.status_code,
                payload=body,
            )
        return DeleteResult(row_ids=list(body.get("result") or []))

    # === Attachments ===

    def fetch_attachments(self, row_id: int) -> list[Attachment]:
        """List every attachment on a row, following pagination."""
        path = f"/sheets/{self.sheet_id}/rows/{row_id}/attachments"
        attachments: list[Attachment] = []
        page = 1
        while True:
            body = self._read(path, params={"page": page, "pageSize": ATTACHMENT_PAGE_SIZE})
            attachments.extend(Attachment.from_api(a) for a in body.get("data") or [])
            total_pages = int(body.get("totalPages") or 1)
            if page >= total_pages:
                return attachments
            page += 1


# Process-wide instance for the server. It holds only the HTTP session;
# sheet state is fetched fresh by every operation.
_smartsheet_client: SmartsheetClient | None = None


def get_smartsheet_client() -> SmartsheetClient:
    """
    Get the global SmartsheetClient instance.
    Initializes from environment variables on first call.

    Raises:
        ConfigurationError: If the token or sheet id is not configured
    """
    global _smartsheet_client
    if _smartsheet_client is None:
        from env_loader import get_api_base, get_api_token, get_sheet_id
        _smartsheet_client = SmartsheetClient(
            get_api_token(),
            get_sheet_id(),
            base_url=get_api_base(),
        )
    return _smartsheet_client


def reset_smartsheet_client() -> None:
    """Reset the global client (useful for testing)."""
    global _smartsheet_client
    if _smartsheet_client is not None:
        _smartsheet_client.close()
    _smartsheet_client = None
