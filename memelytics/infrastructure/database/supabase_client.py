from __future__ import annotations

import hashlib
import os
import re
from dataclasses import dataclass

from supabase import Client, create_client

WALLET_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")


@dataclass(slots=True)
class WalletIdentity:
    wallet_address: str  # lowercased, the stable account key


def normalize_wallet(address: str) -> str:
    address = (address or "").strip()
    if not WALLET_ADDRESS.match(address):
        raise ValueError(f"Invalid wallet address: {address!r}")
    return address.lower()


class SupabaseAuthAdapter:
    """Resolves a bearer token to the wallet that signed in.

    When SUPABASE_DISABLED=1, a wallet-shaped token is taken as the address
    itself and any other token maps to a deterministic fake address.
    """

    def __init__(self) -> None:
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.url = os.getenv("SUPABASE_URL")
        self.key = os.getenv("SUPABASE_ANON_KEY")
        self._client: Client | None = None
        if not self.disabled and self.url and self.key:
            self._client = create_client(self.url, self.key)

    def validate_token(self, token: str) -> WalletIdentity:
        if not token:
            raise ValueError("Missing access token")
        if self.disabled or not self._client:
            if WALLET_ADDRESS.match(token):
                return WalletIdentity(wallet_address=token.lower())
            fake = hashlib.sha1(token.encode("utf-8")).hexdigest()
            return WalletIdentity(wallet_address=f"0x{fake}")
        # Real validation via Supabase Auth; the wallet lives in the user metadata
        try:  # pragma: no cover - network path
            res = self._client.auth.get_user(token)
            user = res.user if res else None
        except Exception as exc:  # pragma: no cover - network path
            raise ValueError(f"Invalid access token: {exc}") from exc
        if not user:  # pragma: no cover - network path
            raise ValueError("Invalid access token")
        metadata = getattr(user, "user_metadata", None) or {}  # pragma: no cover
        return WalletIdentity(wallet_address=normalize_wallet(metadata.get("wallet_address", "")))  # pragma: no cover


_CLIENT_SINGLETON: Client | None = None


def get_supabase_client() -> Client | None:
    global _CLIENT_SINGLETON
    disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_ANON_KEY")
    if disabled or not url or not key:
        return None
    if _CLIENT_SINGLETON is None:
        _CLIENT_SINGLETON = create_client(url, key)
    return _CLIENT_SINGLETON
