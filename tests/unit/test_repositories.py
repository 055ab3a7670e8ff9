from __future__ import annotations

import uuid
from unittest.mock import Mock

import pytest

from memelytics.infrastructure.database.repositories.meme_repository import MemeRepository
from memelytics.infrastructure.database.repositories.user_repository import UserRepository
from memelytics.infrastructure.database.supabase_client import SupabaseAuthAdapter, normalize_wallet


def _wallet() -> str:
    return "0x" + uuid.uuid4().hex + uuid.uuid4().hex[:8]


class TestInMemoryRepositories:
    def test_ensure_is_idempotent_and_lowercases(self):
        users = UserRepository(None)
        address = _wallet().upper().replace("0X", "0x")
        user, created = users.ensure(address)
        again, created_again = users.ensure(address.lower())
        assert created and not created_again
        assert user.wallet_address == address.lower()
        assert again.id == user.id

    def test_memes_newest_first_and_linked(self):
        users = UserRepository(None)
        memes = MemeRepository(None)
        user, _ = users.ensure(_wallet())
        first = memes.create(user.id, "/a", "memes/a.png", "meme", ("gm",))
        second = memes.create(user.id, "/b", "memes/b.png", "sticker")
        users.add_meme(user, first.id)
        users.add_meme(user, second.id)

        listed = memes.list_by_user(user.id)
        assert [m.id for m in listed][:2] == [second.id, first.id]
        assert users.get_by_wallet(user.wallet_address).meme_ids == (first.id, second.id)

    def test_increment_counters(self):
        memes = MemeRepository(None)
        meme = memes.create("u", "/c", "memes/c.png", "meme")
        memes.increment(meme.id, "share")
        updated = memes.increment(meme.id, "share")
        assert (updated.shares, updated.downloads) == (2, 0)
        assert memes.increment("missing", "download") is None
        with pytest.raises(ValueError):
            memes.increment(meme.id, "like")


class TestSupabaseRepositories:
    def test_reads_through_client(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_DISABLED", "0")
        client = Mock()
        query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.return_value.data = [
            {"id": 7, "wallet_address": "0xabc", "created_at": "2024-01-01T00:00:00+00:00", "meme_ids": [1]}
        ]
        user = UserRepository(client).get_by_wallet("0xABC")
        client.table.assert_called_with("users")
        client.table.return_value.select.return_value.eq.assert_called_with("wallet_address", "0xabc")
        assert (user.id, user.meme_ids) == ("7", ("1",))

    def test_client_failures_become_runtime_errors(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_DISABLED", "0")
        client = Mock()
        client.table.side_effect = ConnectionError("down")
        with pytest.raises(RuntimeError):
            MemeRepository(client).get("m1")


class TestWalletAuth:
    def test_normalize_wallet(self):
        assert normalize_wallet(" 0xABCDEF0000000000000000000000000000000001 ") == (
            "0xabcdef0000000000000000000000000000000001"
        )
        with pytest.raises(ValueError):
            normalize_wallet("0x123")

    def test_disabled_mode_tokens(self):
        auth = SupabaseAuthAdapter()
        wallet = "0x" + "A" * 40
        assert auth.validate_token(wallet).wallet_address == wallet.lower()
        derived = auth.validate_token("some-session-token").wallet_address
        assert normalize_wallet(derived) == derived
        assert auth.validate_token("some-session-token").wallet_address == derived
