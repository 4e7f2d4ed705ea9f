"""Tests for UserDirectory address registration and lookup."""

from __future__ import annotations

import sqlite3

import pytest

from sellerdesk.accounts.directory import UserDirectory
from sellerdesk.domain.errors import InvalidInputError
from sellerdesk.domain.types import Channel


@pytest.fixture
def directory(conn: sqlite3.Connection) -> UserDirectory:
    return UserDirectory(conn)


class TestResolve:
    def test_registered_number_resolves(self, directory: UserDirectory) -> None:
        directory.register("user-1", Channel.SMS, "+15550009999")
        assert directory.resolve(Channel.SMS, "+15550009999") == "user-1"

    def test_unknown_address_returns_none(self, directory: UserDirectory) -> None:
        assert directory.resolve("sms", "+15550000000") is None

    def test_blank_address_returns_none(self, directory: UserDirectory) -> None:
        assert directory.resolve("email", "  ") is None

    def test_email_lookup_is_case_insensitive(self, directory: UserDirectory) -> None:
        directory.register("user-1", "email", "Deals@Example.com")
        assert directory.resolve("email", " deals@EXAMPLE.com ") == "user-1"

    def test_channels_are_separate(self, directory: UserDirectory) -> None:
        directory.register("user-1", "sms", "shared")
        assert directory.resolve("email", "shared") is None


class TestRegister:
    def test_reregistering_moves_address(self, directory: UserDirectory) -> None:
        directory.register("user-1", "sms", "+15550009999")
        directory.register("user-2", "sms", "+15550009999")
        assert directory.resolve("sms", "+15550009999") == "user-2"

    @pytest.mark.parametrize(
        ("user_id", "channel", "address"),
        [
            ("", "sms", "+1555"),
            ("user-1", "sms", " "),
            ("user-1", "fax", "+1555"),
        ],
    )
    def test_invalid_registration_rejected(
        self, directory: UserDirectory, user_id: str, channel: str, address: str
    ) -> None:
        with pytest.raises(InvalidInputError):
            directory.register(user_id, channel, address)
