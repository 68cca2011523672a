# Overview: HTTP gateway to the shared remote backend (PostgREST / Supabase REST) used by push and pull.

"""
Remote Gateway

WHY: The sync engine talks to the multi-tenant backend only through three
batched calls per entity type, so it can be replaced by an in-memory fake.

CONTRACT:
- batch_upsert(entity_type, records) -> [RecordOutcome]
- batch_delete(entity_type, tombstones) -> [RecordOutcome]
- fetch_changed_since(entity_type, watermark, page_size) -> RemotePage

ERROR MAPPING:
- timeouts, connection errors, 408/429/5xx -> TransportError
- 401/403                                 -> AuthError
- 400/409/422 on a bulk write             -> replayed one record at a time
  so one bad record does not block its siblings

WIRE FORMAT:
- Upserts: POST /rest/v1/<table>?on_conflict=id with merge-duplicates
- Upserts always carry deleted=false, so a re-created id is live again
- Deletes: PATCH /rest/v1/<table>?id=in.(...) setting deleted=true and
  updated_at to the local delete time, so the tombstone passes every other
  device's watermark. Rows already newer than the delete are left alone
  (last write wins); absent ids count as deleted.
- Pulls: keyset on (updated_at, id) ascending, scoped to restaurant_id.
  Rows carrying deleted=true are remote soft deletes.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .entity_registry import get_spec
from .sync_errors import AuthError, TransportError
from .sync_types import RecordOutcome, RemoteChange, RemotePage, Watermark


logger = logging.getLogger(__name__)

REJECTION_STATUSES = {400, 409, 422}
AUTH_STATUSES = {401, 403}
RETRYABLE_STATUSES = {408, 425, 429}


class RemoteGatewayConfigError(Exception):
    """Raised when the gateway is built without a remote URL."""
    pass


def _quote(value: str) -> str:
    """Quote a value for a PostgREST logical filter."""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text[:200]}"
    if isinstance(body, dict):
        parts = [str(body.get(key)) for key in ("code", "message", "details") if body.get(key)]
        if parts:
            return f"HTTP {response.status_code}: " + " - ".join(parts)
    return f"HTTP {response.status_code}: {body}"


class RemoteGateway:
    """
    httpx-backed client for the remote REST backend.

    Args:
        base_url: Backend root, e.g. https://project.supabase.co
        api_key: Project API key (sent as apikey header)
        restaurant_id: Tenant id every row is scoped to
        access_token: Session token; falls back to api_key
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        restaurant_id: str,
        *,
        access_token: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not base_url:
            raise RemoteGatewayConfigError("Remote URL is not configured")
        self.restaurant_id = restaurant_id
        self._client = httpx.Client(
            base_url=f"{base_url.rstrip('/')}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {access_token or api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config, *, transport: Optional[httpx.BaseTransport] = None) -> "RemoteGateway":
        return cls(
            config["SYNC_REMOTE_URL"],
            config["SYNC_REMOTE_API_KEY"],
            config["SYNC_RESTAURANT_ID"],
            access_token=config.get("SYNC_ACCESS_TOKEN") or None,
            timeout=config.get("SYNC_REQUEST_TIMEOUT", 15.0),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransportError(f"{method} {path} timed out") from exc
        except httpx.TransportError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if response.status_code in AUTH_STATUSES:
            raise AuthError(_error_message(response))
        if response.status_code >= 500 or response.status_code in RETRYABLE_STATUSES:
            raise TransportError(_error_message(response))
        return response

    def _unexpected(self, response: httpx.Response) -> TransportError:
        return TransportError(f"Unexpected response: {_error_message(response)}")

    # === Push ===

    def batch_upsert(self, entity_type: str, records: list[dict]) -> list[RecordOutcome]:
        """
        Insert-or-update records keyed by id. Safe to repeat.

        Raises:
            TransportError: If the backend could not be reached
            AuthError: If the session was rejected
        """
        if not records:
            return []
        table = get_spec(entity_type).table
        rows = [self._scoped(record) for record in records]

        response = self._post_upsert(table, rows)
        if response.is_success:
            return [RecordOutcome(row["id"], True) for row in rows]
        if response.status_code not in REJECTION_STATUSES:
            raise self._unexpected(response)

        if len(rows) == 1:
            return [RecordOutcome(rows[0]["id"], False, _error_message(response))]

        logger.info("Bulk upsert to %s rejected, replaying %d records individually", table, len(rows))
        outcomes = []
        for row in rows:
            single = self._post_upsert(table, [row])
            if single.is_success:
                outcomes.append(RecordOutcome(row["id"], True))
            elif single.status_code in REJECTION_STATUSES:
                outcomes.append(RecordOutcome(row["id"], False, _error_message(single)))
            else:
                raise self._unexpected(single)
        return outcomes

    def batch_delete(self, entity_type: str, tombstones: list[dict]) -> list[RecordOutcome]:
        """
        Soft-delete records.

        Args:
            entity_type: Registered entity type
            tombstones: Dicts with id and updated_at (the local delete time)

        Returns:
            One RecordOutcome per id; ids absent remotely count as deleted

        Raises:
            TransportError: If the backend could not be reached
            AuthError: If the session was rejected
        """
        if not tombstones:
            return []
        table = get_spec(entity_type).table

        # One PATCH per distinct delete time
        by_stamp: dict[int, list[str]] = {}
        for tombstone in tombstones:
            by_stamp.setdefault(int(tombstone["updated_at"]), []).append(tombstone["id"])

        outcomes = []
        for updated_at, ids in by_stamp.items():
            outcomes.extend(self._delete_group(table, ids, updated_at))
        return outcomes

    def _delete_group(self, table: str, ids: list[str], updated_at: int) -> list[RecordOutcome]:
        response = self._mark_deleted(table, ids, updated_at)
        if response.is_success:
            return [RecordOutcome(entity_id, True) for entity_id in ids]
        if response.status_code not in REJECTION_STATUSES:
            raise self._unexpected(response)

        if len(ids) == 1:
            return [RecordOutcome(ids[0], False, _error_message(response))]

        outcomes = []
        for entity_id in ids:
            single = self._mark_deleted(table, [entity_id], updated_at)
            if single.is_success:
                outcomes.append(RecordOutcome(entity_id, True))
            elif single.status_code in REJECTION_STATUSES:
                outcomes.append(RecordOutcome(entity_id, False, _error_message(single)))
            else:
                raise self._unexpected(single)
        return outcomes

    def _scoped(self, record: dict) -> dict:
        row = dict(record)
        if not row.get("restaurant_id"):
            row["restaurant_id"] = self.restaurant_id
        row["deleted"] = False
        return row

    def _post_upsert(self, table: str, rows: list[dict]) -> httpx.Response:
        return self._request(
            "POST",
            f"/{table}",
            params={"on_conflict": "id"},
            json=rows,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    def _mark_deleted(self, table: str, ids: list[str], updated_at: int) -> httpx.Response:
        id_list = ",".join(_quote(entity_id) for entity_id in ids)
        return self._request(
            "PATCH",
            f"/{table}",
            params={
                "id": f"in.({id_list})",
                "restaurant_id": f"eq.{self.restaurant_id}",
                "updated_at": f"lt.{updated_at}",
            },
            json={"deleted": True, "updated_at": updated_at},
            headers={"Prefer": "return=minimal"},
        )

    # === Pull ===

    def fetch_changed_since(self, entity_type: str, watermark: Watermark, page_size: int) -> RemotePage:
        """
        Next page of remote rows after the watermark, oldest first.

        Raises:
            TransportError: If the backend could not be reached
            AuthError: If the session was rejected
        """
        table = get_spec(entity_type).table
        params = {
            "select": "*",
            "restaurant_id": f"eq.{self.restaurant_id}",
            "order": "updated_at.asc,id.asc",
            "limit": str(page_size),
        }
        if watermark.last_id:
            params["or"] = (
                f"(updated_at.gt.{watermark.updated_at},"
                f"and(updated_at.eq.{watermark.updated_at},id.gt.{_quote(watermark.last_id)}))"
            )
        else:
            params["updated_at"] = f"gte.{watermark.updated_at}"

        response = self._request("GET", f"/{table}", params=params)
        if not response.is_success:
            raise self._unexpected(response)

        try:
            rows = response.json()
        except ValueError as exc:
            raise TransportError(f"Invalid JSON from {table}: {exc}") from exc

        changes = [
            RemoteChange(
                entity_id=str(row["id"]),
                updated_at=int(row["updated_at"]),
                values=row,
                deleted=bool(row.get("deleted") or False),
            )
            for row in rows
        ]
        return RemotePage(changes=changes, has_more=len(changes) >= page_size)
