"""
PostgREST (Supabase REST) data store backend.
"""

from typing import Any, Dict, List, Optional, Tuple, Union

import httpx
import structlog

from .base import Action, ContainsAny, DataStore, Eq, In, Query, Row, StoreError

logger = structlog.get_logger(__name__)

SINGLE_OBJECT_MEDIA_TYPE = "application/vnd.pgrst.object+json"

_METHODS = {
    Action.SELECT: "GET",
    Action.INSERT: "POST",
    Action.UPDATE: "PATCH",
    Action.DELETE: "DELETE",
}


def plain_value(value: Any) -> str:
    """Render a value for a top-level operator, where PostgREST reads it verbatim."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def quote_value(value: Any) -> str:
    """Quote a value inside a list or logic tree so reserved characters are taken literally."""
    text = plain_value(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def escape_like(text: str) -> str:
    """
    Escape LIKE wildcards so user input only matches literally.

    PostgREST rewrites every ``*`` in a pattern to ``%`` before matching, so a
    literal asterisk cannot be expressed; it is sent as the single-character
    wildcard ``_`` instead.
    """
    text = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return text.replace("*", "_")


def encode_filter(flt) -> Tuple[str, str]:
    """Encode a filter as a PostgREST query parameter."""
    if isinstance(flt, Eq):
        return flt.column, f"eq.{plain_value(flt.value)}"
    if isinstance(flt, In):
        values = ",".join(quote_value(v) for v in flt.values)
        return flt.column, f"in.({values})"
    if isinstance(flt, ContainsAny):
        pattern = quote_value(f"*{escape_like(flt.text)}*")
        clauses = ",".join(f"{column}.ilike.{pattern}" for column in flt.columns)
        return "or", f"({clauses})"
    raise TypeError(f"Unsupported filter: {flt!r}")


def build_params(query: Query) -> List[Tuple[str, str]]:
    """Build the query string parameters for a query."""
    params: List[Tuple[str, str]] = []
    if query.action == Action.SELECT:
        params.append(("select", query.columns))
    params.extend(encode_filter(flt) for flt in query.filters)
    if query.order_by:
        column, descending = query.order_by
        params.append(("order", f"{column}.{'desc' if descending else 'asc'}"))
    return params


class PostgrestStore(DataStore):
    """Data store speaking the PostgREST HTTP dialect."""

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the store.

        Args:
            url: Project URL; requests go to ``<url>/rest/v1``
            api_key: Key sent as ``apikey`` and bearer token
            timeout: Request timeout in seconds
            client: Preconfigured HTTP client (tests pass one with a mock transport)
        """
        self.base_url = url.rstrip("/") + "/rest/v1"
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            },
        )

    async def execute(self, query: Query) -> Union[Row, List[Row]]:
        headers: Dict[str, str] = {}
        if query.action != Action.SELECT:
            headers["Prefer"] = "return=representation"
        if query.single_row:
            headers["Accept"] = SINGLE_OBJECT_MEDIA_TYPE

        try:
            response = await self.client.request(
                _METHODS[query.action],
                f"/{query.table}",
                params=build_params(query),
                json=query.payload,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error("Data store request failed", table=query.table, action=query.action.value, error=str(e))
            raise StoreError(f"Data store request failed: {e}") from e

        if response.status_code >= 400:
            raise self._error_from_response(response)

        if not response.content:
            return {} if query.single_row else []
        return response.json()

    @staticmethod
    def _error_from_response(response: httpx.Response) -> StoreError:
        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            return StoreError(
                response.text or f"Data store responded with status {response.status_code}",
                status_code=response.status_code,
            )

        return StoreError(
            body.get("message") or f"Data store responded with status {response.status_code}",
            code=body.get("code"),
            details=body.get("details"),
            hint=body.get("hint"),
            status_code=response.status_code,
        )

    async def close(self) -> None:
        await self.client.aclose()
