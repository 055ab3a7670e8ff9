from __future__ import annotations

import os
import uuid
from datetime import UTC, datetime

from supabase import Client

from memelytics.domain.entities.user import UserEntity
from memelytics.infrastructure.database.postgres_client import get_postgres_client

# module-level in-memory store for disabled mode, keyed by wallet address
_MEM_USERS: dict[str, UserEntity] = {}


class UserRepository:
    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.use_local_db = os.getenv("USE_LOCAL_DB", "0") == "1"
        self.pg_client = get_postgres_client() if self.use_local_db else None

    def _row_to_entity(self, row: dict) -> UserEntity:
        created_at = row.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return UserEntity(
            id=str(row["id"]),
            wallet_address=row["wallet_address"],
            created_at=created_at,
            meme_ids=tuple(str(m) for m in row.get("meme_ids") or ()),
        )

    def get_by_wallet(self, wallet_address: str) -> UserEntity | None:
        wallet_address = wallet_address.lower()
        if self.use_local_db and self.pg_client:
            row = self.pg_client.fetch_one("SELECT * FROM users WHERE wallet_address = %s", (wallet_address,))
            return self._row_to_entity(row) if row else None

        if self.disabled or self.client is None:
            return _MEM_USERS.get(wallet_address)

        try:  # pragma: no cover - network
            res = self.client.table("users").select("*").eq("wallet_address", wallet_address).limit(1).execute()
            rows = res.data or []
            return self._row_to_entity(rows[0]) if rows else None
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"DB get user failed: {exc}") from exc

    def ensure(self, wallet_address: str) -> tuple[UserEntity, bool]:
        """Return the user for ``wallet_address``, creating it if needed.

        The second element tells whether a new record was created.
        """
        wallet_address = wallet_address.lower()
        existing = self.get_by_wallet(wallet_address)
        if existing is not None:
            return existing, False
        now = datetime.now(UTC)

        if self.use_local_db and self.pg_client:
            try:
                row = self.pg_client.insert_returning(
                    """
                    INSERT INTO users (wallet_address, created_at)
                    VALUES (%s, %s)
                    ON CONFLICT (wallet_address) DO UPDATE SET wallet_address = EXCLUDED.wallet_address
                    RETURNING *
                    """,
                    (wallet_address, now),
                )
                return self._row_to_entity(row), True
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL insert user failed: {exc}") from exc

        if self.disabled or self.client is None:
            entity = UserEntity(id=uuid.uuid4().hex, wallet_address=wallet_address, created_at=now)
            _MEM_USERS[wallet_address] = entity
            return entity, True

        try:  # pragma: no cover - network
            data = {"wallet_address": wallet_address, "created_at": now.isoformat(), "meme_ids": []}
            res = self.client.table("users").insert(data).execute()
            return self._row_to_entity(res.data[0]), True
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"DB insert user failed: {exc}") from exc

    def add_meme(self, user: UserEntity, meme_id: str) -> UserEntity:
        if self.use_local_db and self.pg_client:
            try:
                row = self.pg_client.insert_returning(
                    "UPDATE users SET meme_ids = array_append(meme_ids, %s) WHERE id = %s RETURNING *",
                    (meme_id, user.id),
                )
                return self._row_to_entity(row)
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL update user failed: {exc}") from exc

        if self.disabled or self.client is None:
            current = _MEM_USERS.get(user.wallet_address, user)
            updated = UserEntity(
                id=current.id,
                wallet_address=current.wallet_address,
                created_at=current.created_at,
                meme_ids=current.meme_ids + (meme_id,),
            )
            _MEM_USERS[user.wallet_address] = updated
            return updated

        try:  # pragma: no cover - network
            meme_ids = list(user.meme_ids) + [meme_id]
            res = self.client.table("users").update({"meme_ids": meme_ids}).eq("id", user.id).execute()
            return self._row_to_entity(res.data[0])
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"DB update user failed: {exc}") from exc
