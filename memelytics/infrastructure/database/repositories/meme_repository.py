from __future__ import annotations

import os
import uuid
from dataclasses import replace
from datetime import UTC, datetime

from supabase import Client

from memelytics.domain.entities.meme import MemeEntity
from memelytics.infrastructure.database.postgres_client import get_postgres_client

# module-level in-memory store for disabled mode
_MEM_MEMES: dict[str, MemeEntity] = {}

COUNTERS = {"download": "downloads", "share": "shares"}


class MemeRepository:
    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.use_local_db = os.getenv("USE_LOCAL_DB", "0") == "1"
        self.pg_client = get_postgres_client() if self.use_local_db else None

    def _row_to_entity(self, row: dict) -> MemeEntity:
        created_at = row["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return MemeEntity(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            image_url=row["image_url"],
            storage_path=row["storage_path"],
            category=row["category"],
            tags=tuple(row.get("tags") or ()),
            created_at=created_at,
            downloads=int(row.get("downloads") or 0),
            shares=int(row.get("shares") or 0),
        )

    def create(
        self,
        user_id: str,
        image_url: str,
        storage_path: str,
        category: str,
        tags: tuple[str, ...] = (),
    ) -> MemeEntity:
        now = datetime.now(UTC)

        if self.use_local_db and self.pg_client:
            try:
                row = self.pg_client.insert_returning(
                    """
                    INSERT INTO memes (user_id, image_url, storage_path, category, tags, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    RETURNING *
                    """,
                    (user_id, image_url, storage_path, category, list(tags), now),
                )
                return self._row_to_entity(row)
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL insert meme failed: {exc}") from exc

        if self.disabled or self.client is None:
            entity = MemeEntity(
                id=uuid.uuid4().hex,
                user_id=user_id,
                image_url=image_url,
                storage_path=storage_path,
                category=category,
                tags=tuple(tags),
                created_at=now,
            )
            _MEM_MEMES[entity.id] = entity
            return entity

        try:  # pragma: no cover - network
            data = {
                "user_id": user_id,
                "image_url": image_url,
                "storage_path": storage_path,
                "category": category,
                "tags": list(tags),
                "created_at": now.isoformat(),
            }
            res = self.client.table("memes").insert(data).execute()
            return self._row_to_entity(res.data[0])
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"DB insert meme failed: {exc}") from exc

    def get(self, meme_id: str) -> MemeEntity | None:
        if self.use_local_db and self.pg_client:
            try:
                row = self.pg_client.fetch_one("SELECT * FROM memes WHERE id = %s", (meme_id,))
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL get meme failed: {exc}") from exc
            return self._row_to_entity(row) if row else None

        if self.disabled or self.client is None:
            return _MEM_MEMES.get(meme_id)

        try:  # pragma: no cover - network
            res = self.client.table("memes").select("*").eq("id", meme_id).limit(1).execute()
            rows = res.data or []
            return self._row_to_entity(rows[0]) if rows else None
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"DB get meme failed: {exc}") from exc

    def list_by_user(self, user_id: str) -> list[MemeEntity]:
        """All memes of ``user_id``, newest first."""
        if self.use_local_db and self.pg_client:
            rows = self.pg_client.fetch_all(
                "SELECT * FROM memes WHERE user_id = %s ORDER BY created_at DESC", (user_id,)
            )
            return [self._row_to_entity(row) for row in rows]

        if self.disabled or self.client is None:
            items = [m for m in _MEM_MEMES.values() if m.user_id == user_id]
            items.sort(key=lambda m: m.created_at, reverse=True)
            return items

        try:  # pragma: no cover - network
            res = (
                self.client.table("memes")
                .select("*")
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .execute()
            )
            return [self._row_to_entity(row) for row in res.data or []]
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"DB list memes failed: {exc}") from exc

    def increment(self, meme_id: str, action: str) -> MemeEntity | None:
        """Bump the download or share counter. Returns ``None`` for unknown memes."""
        column = COUNTERS.get(action)
        if column is None:
            raise ValueError(f"Invalid action: {action}")

        if self.use_local_db and self.pg_client:
            try:
                row = self.pg_client.fetch_one(
                    f"UPDATE memes SET {column} = {column} + 1 WHERE id = %s RETURNING *", (meme_id,)
                )
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL update meme failed: {exc}") from exc
            return self._row_to_entity(row) if row else None

        if self.disabled or self.client is None:
            current = _MEM_MEMES.get(meme_id)
            if current is None:
                return None
            updated = replace(current, **{column: getattr(current, column) + 1})
            _MEM_MEMES[meme_id] = updated
            return updated

        current = self.get(meme_id)  # pragma: no cover - network
        if current is None:  # pragma: no cover
            return None
        try:  # pragma: no cover - network
            value = getattr(current, column) + 1
            res = self.client.table("memes").update({column: value}).eq("id", meme_id).execute()
            return self._row_to_entity(res.data[0])
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"DB update meme failed: {exc}") from exc
