import datetime

import time_machine

from request_auth._token_cache import TokenCache
from request_auth.models.token import CachedToken

FROZEN_AT = datetime.datetime(2012, 10, 1, 1, 0, tzinfo=datetime.timezone.utc)


def test_last_write_wins(token_cache: TokenCache):
    token_cache.set("req-1", CachedToken(access_token="first"))
    token_cache.set("req-1", CachedToken(access_token="second"))

    token = token_cache.get("req-1")

    assert token is not None
    assert token.access_token == "second"
    assert len(token_cache) == 1


def test_tokens_are_isolated_per_key(token_cache: TokenCache):
    token_cache.set("req-1", CachedToken(access_token="one"))

    assert token_cache.get("req-2") is None
    assert "req-1" in token_cache
    assert "req-2" not in token_cache


def test_expired_token_is_dropped_on_read(token_cache: TokenCache):
    with time_machine.travel(FROZEN_AT, tick=False) as traveller:
        token_cache.set("req-1", CachedToken.issued(access_token="abc", expires_in=60))

        assert not token_cache.is_expired("req-1")

        traveller.shift(60)

        assert token_cache.is_expired("req-1")
        assert token_cache.peek("req-1") is not None
        assert token_cache.get("req-1") is None
        assert token_cache.peek("req-1") is None


def test_needs_refresh_within_buffer(token_cache: TokenCache):
    with time_machine.travel(FROZEN_AT, tick=False) as traveller:
        token_cache.set("req-1", CachedToken.issued(access_token="abc", expires_in=300))

        assert not token_cache.needs_refresh("req-1", buffer=60)

        traveller.shift(240)

        assert token_cache.needs_refresh("req-1", buffer=60)
        assert not token_cache.is_expired("req-1")


def test_tokens_without_expiry_never_need_refresh(token_cache: TokenCache):
    token_cache.set("req-1", CachedToken(access_token="abc"))

    assert not token_cache.needs_refresh("req-1")
    assert not token_cache.needs_refresh("missing")
    assert token_cache.is_expired("missing")


def test_delete_and_clear(token_cache: TokenCache):
    token_cache.set("req-1", CachedToken(access_token="one"))
    token_cache.set("req-2", CachedToken(access_token="two"))

    token_cache.delete("req-1")
    token_cache.delete("req-1")

    assert token_cache.keys() == ["req-2"]

    token_cache.clear()

    assert len(token_cache) == 0
