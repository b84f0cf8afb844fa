from typing import Any, Dict, Optional

import httpx

from records_client.errors import ApiConflictError, ApiError, ApiNotFoundError, ApiValidationError

_ERRORS_BY_STATUS = {
    400: ApiValidationError,
    404: ApiNotFoundError,
    409: ApiConflictError,
    422: ApiValidationError,
}


class RecordsApiClient:
    """Thin async wrapper around the records HTTP API.

    Args:
        base_url: Root URL of the backend, e.g. ``http://localhost:8000``
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport, used to run against an in-process app
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Optional[Any]:
        response = await self._client.request(method, url, **kwargs)
        if response.status_code >= 400:
            raise self._error_from(response)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise ApiError(
                f"Response from {url} is not JSON", status_code=response.status_code
            )

    @staticmethod
    def _error_from(response: httpx.Response) -> ApiError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        detail = body.get("detail")
        errors = body.get("errors") or []
        # FastAPI's default 422 payload carries the error list in "detail"
        if isinstance(detail, list):
            errors = [
                {"field": str(err.get("loc", ["body"])[-1]), "message": err.get("msg", "")}
                for err in detail
            ]
            detail = "Validation failed"

        error_class = _ERRORS_BY_STATUS.get(response.status_code, ApiError)
        return error_class(
            detail or f"HTTP error {response.status_code}",
            status_code=response.status_code,
            errors=errors,
        )

    async def list_records(self, page: int = 1, limit: int = 10, search: Optional[str] = None) -> Dict[str, Any]:
        params = {"page": page, "limit": limit}
        if search:
            params["search"] = search
        body = await self._request("GET", "/records", params=params)
        if not isinstance(body, dict) or not isinstance(body.get("data"), list):
            raise ApiError("Unexpected listing response", status_code=200)
        return body

    async def create_record(self, name: str, email: str, message: str) -> Dict[str, Any]:
        body = await self._request(
            "POST", "/records", json={"name": name, "email": email, "message": message}
        )
        if not isinstance(body, dict):
            raise ApiError("Unexpected create response", status_code=201)
        return body

    async def get_record(self, record_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/records/{record_id}")

    async def update_record(self, record_id: int, **fields) -> Dict[str, Any]:
        return await self._request("PATCH", f"/records/{record_id}", json=fields)

    async def delete_record(self, record_id: int) -> None:
        await self._request("DELETE", f"/records/{record_id}")

    async def count(self) -> int:
        body = await self._request("GET", "/records/count")
        return body["total"]
