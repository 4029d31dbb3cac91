"""Symmetric sealing of client-persisted token state."""

from __future__ import annotations

import base64
import hashlib
import json
from typing import Any, Dict

from cryptography.fernet import Fernet, InvalidToken


class TokenCipherService:
    """Seal JSON payloads with a Fernet key derived from a shared secret."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def seal(self, payload: Dict[str, Any]) -> str:
        """Serialize and encrypt ``payload``."""
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        return self._fernet.encrypt(serialized.encode("utf-8")).decode("utf-8")

    def open(self, sealed: str) -> Dict[str, Any]:
        """Decrypt and parse a sealed payload; ``ValueError`` when unreadable."""
        try:
            plaintext = self._fernet.decrypt(sealed.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError("Sealed payload could not be decrypted.") from exc
        payload = json.loads(plaintext)
        if not isinstance(payload, dict):
            raise ValueError("Sealed payload is not an object.")
        return payload


__all__ = ["TokenCipherService"]
