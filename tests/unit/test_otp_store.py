"""Unit tests for InMemoryOTPStore."""

from __future__ import annotations

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from portier.auth.otp_store import InMemoryOTPStore, generate_code


@pytest.mark.unit
class TestGenerateCode:
    def test_four_digits_without_leading_zero(self) -> None:
        for _ in range(500):
            code = generate_code()
            assert len(code) == 4
            assert code.isdigit()
            assert 1000 <= int(code) <= 9999


@pytest.mark.unit
class TestInMemoryOTPStore:
    def test_issue_and_verify(self) -> None:
        store = InMemoryOTPStore()
        code = store.issue("u@allowed.com")
        assert store.verify("u@allowed.com", code) is True

    def test_verify_consumes(self) -> None:
        store = InMemoryOTPStore()
        code = store.issue("u@allowed.com")
        store.verify("u@allowed.com", code)
        assert store.verify("u@allowed.com", code) is False
        assert len(store) == 0

    def test_failed_verify_consumes(self) -> None:
        store = InMemoryOTPStore(code_factory=lambda: "1234")
        store.issue("u@allowed.com")
        assert store.verify("u@allowed.com", "9999") is False
        assert store.verify("u@allowed.com", "1234") is False

    def test_verify_unknown_email(self) -> None:
        store = InMemoryOTPStore()
        assert store.verify("nobody@allowed.com", "1234") is False

    def test_reissue_invalidates_previous_code(self) -> None:
        codes = iter(["1111", "2222"])
        store = InMemoryOTPStore(code_factory=lambda: next(codes))
        first = store.issue("u@allowed.com")
        store.issue("u@allowed.com")
        assert store.verify("u@allowed.com", first) is False

    def test_reissue_then_new_code_verifies(self) -> None:
        codes = iter(["1111", "2222"])
        store = InMemoryOTPStore(code_factory=lambda: next(codes))
        store.issue("u@allowed.com")
        second = store.issue("u@allowed.com")
        assert len(store) == 1
        assert store.verify("u@allowed.com", second) is True

    def test_emails_are_independent(self) -> None:
        codes = iter(["1111", "2222"])
        store = InMemoryOTPStore(code_factory=lambda: next(codes))
        a = store.issue("a@allowed.com")
        b = store.issue("b@allowed.com")
        assert store.verify("a@allowed.com", b) is False
        assert store.verify("b@allowed.com", b) is True
        assert a == "1111"

    def test_empty_code_never_matches(self) -> None:
        store = InMemoryOTPStore(code_factory=lambda: "")
        store.issue("u@allowed.com")
        assert store.verify("u@allowed.com", "") is False

    def test_expired_code_rejected(self) -> None:
        store = InMemoryOTPStore(ttl_seconds=60)
        code = store.issue("u@allowed.com")
        with patch.object(time, "time", return_value=time.time() + 61):
            assert store.verify("u@allowed.com", code) is False

    def test_cleanup_removes_expired(self) -> None:
        store = InMemoryOTPStore(ttl_seconds=60)
        store.issue("old@allowed.com")
        store._store["old@allowed.com"] = ("1234", time.time() - 10)
        store.issue("new@allowed.com")
        assert "old@allowed.com" not in store._store

    def test_zero_ttl_never_expires(self) -> None:
        store = InMemoryOTPStore(ttl_seconds=0)
        code = store.issue("u@allowed.com")
        with patch.object(time, "time", return_value=time.time() + 10**9):
            assert store.verify("u@allowed.com", code) is True

    def test_verify_and_consume_alias(self) -> None:
        store = InMemoryOTPStore()
        code = store.issue("u@allowed.com")
        assert store.verify_and_consume("u@allowed.com", code) is True


@pytest.mark.unit
class TestOTPStoreConcurrency:
    def test_exactly_one_thread_wins(self) -> None:
        store = InMemoryOTPStore()
        for _ in range(20):
            code = store.issue("u@allowed.com")
            with ThreadPoolExecutor(max_workers=16) as pool:
                results = list(pool.map(lambda _: store.verify("u@allowed.com", code), range(64)))
            assert results.count(True) == 1
            assert len(store) == 0

    @pytest.mark.asyncio
    async def test_exactly_one_task_wins(self) -> None:
        store = InMemoryOTPStore()
        code = store.issue("u@allowed.com")
        results = await asyncio.gather(
            *(asyncio.to_thread(store.verify, "u@allowed.com", code) for _ in range(32))
        )
        assert results.count(True) == 1
