"""
Profile document storage on Firestore through its REST API.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from account_portal.clients.google_credentials import GoogleCredentialsProvider
from account_portal.core.config import IdentitySettings
from account_portal.core.errors import DocumentStoreError
from account_portal.utils.http import json_or_empty, request_with_retry


def encode_value(value: Any) -> Dict[str, Any]:
    """Encode a Python value as a Firestore ``Value`` message."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return {"timestampValue": value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")}
    if isinstance(value, dict):
        return {"mapValue": {"fields": {k: encode_value(v) for k, v in value.items()}}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    return {"stringValue": str(value)}


def _parse_timestamp(raw: str) -> datetime:
    # Firestore emits up to nanosecond precision; datetime keeps microseconds.
    stamp = raw.rstrip("Z")
    if "." in stamp:
        whole, fraction = stamp.split(".", 1)
        stamp = f"{whole}.{fraction[:6].ljust(6, '0')}"
    return datetime.fromisoformat(stamp).replace(tzinfo=timezone.utc)


def decode_value(value: Dict[str, Any]) -> Any:
    """Decode a Firestore ``Value`` message."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "timestampValue" in value:
        return _parse_timestamp(value["timestampValue"])
    if "mapValue" in value:
        fields = value["mapValue"].get("fields", {})
        return {k: decode_value(v) for k, v in fields.items()}
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    return value.get("stringValue")


def _decode_document(document: Dict[str, Any]) -> Dict[str, Any]:
    return {k: decode_value(v) for k, v in document.get("fields", {}).items()}


class FirestoreDocumentStore:
    """Document CRUD against ``projects/<id>/databases/(default)/documents``."""

    BASE_URL = "https://firestore.googleapis.com/v1"

    def __init__(
        self,
        settings: IdentitySettings,
        credentials: GoogleCredentialsProvider,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._credentials = credentials
        self._timeout = timeout
        self._transport = transport

    def _url(self, collection: str, doc_id: Optional[str] = None) -> str:
        path = (
            f"{self.BASE_URL}/projects/{self._settings.project_id}"
            f"/databases/(default)/documents/{collection}"
        )
        return f"{path}/{doc_id}" if doc_id else path

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = await self._credentials.authorization_header()
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            return await request_with_retry(
                client.request, method, url, headers=headers, **kwargs
            )

    @staticmethod
    def _raise_for_error(response: httpx.Response) -> None:
        if response.is_success:
            return
        error = json_or_empty(response).get("error") or {}
        message = error.get("message") if isinstance(error, dict) else None
        raise DocumentStoreError(message or f"HTTP {response.status_code}")

    async def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        response = await self._request("GET", self._url(collection, doc_id))
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        self._raise_for_error(response)
        return _decode_document(response.json())

    async def set_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        body = {"fields": {k: encode_value(v) for k, v in data.items()}}
        response = await self._request("PATCH", self._url(collection, doc_id), json=body)
        self._raise_for_error(response)

    async def update_document(
        self, collection: str, doc_id: str, fields: Dict[str, Any]
    ) -> None:
        """Patch only ``fields``; fails when the document is missing."""
        params = [("updateMask.fieldPaths", name) for name in fields]
        params.append(("currentDocument.exists", "true"))
        body = {"fields": {k: encode_value(v) for k, v in fields.items()}}
        response = await self._request(
            "PATCH", self._url(collection, doc_id), params=params, json=body
        )
        self._raise_for_error(response)

    async def delete_document(self, collection: str, doc_id: str) -> None:
        response = await self._request("DELETE", self._url(collection, doc_id))
        if response.status_code == httpx.codes.NOT_FOUND:
            return
        self._raise_for_error(response)

    async def list_documents(self, collection: str) -> list[Dict[str, Any]]:
        documents: list[Dict[str, Any]] = []
        page_token: Optional[str] = None
        while True:
            params: Dict[str, Any] = {"pageSize": 300}
            if page_token:
                params["pageToken"] = page_token
            response = await self._request("GET", self._url(collection), params=params)
            self._raise_for_error(response)
            payload = response.json()
            documents.extend(_decode_document(doc) for doc in payload.get("documents", []))
            page_token = payload.get("nextPageToken")
            if not page_token:
                return documents


__all__ = ["FirestoreDocumentStore", "decode_value", "encode_value"]
