from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from arewedown.config import RecipientConfig
from arewedown.errors import ConfigurationError
from arewedown.recipients import parse_recipient_names, resolve_recipients


DIRECTORY = {
    "alice": RecipientConfig(address="alice@example.com"),
    "bob": RecipientConfig(address="bob@example.com", channels=["email", "telegram"]),
}


def test_parse_recipient_names_drops_empty_tokens() -> None:
    assert parse_recipient_names(" alice, ,bob,, ") == ["alice", "bob"]
    assert parse_recipient_names("") == []
    assert parse_recipient_names(None) == []


def test_parse_recipient_names_rejects_non_string() -> None:
    with pytest.raises(ConfigurationError):
        parse_recipient_names(["alice", "bob"])


def test_resolve_recipients_omits_and_warns_on_unknown() -> None:
    with capture_logs() as logs:
        resolved = resolve_recipients("alice,,bob,ghost", DIRECTORY, watcher="site-a")

    assert {r.name for r in resolved} == {"alice", "bob"}
    warnings = [entry for entry in logs if entry["log_level"] == "warning"]
    assert len(warnings) == 1
    assert warnings[0]["recipient"] == "ghost"
    assert warnings[0]["watcher"] == "site-a"


def test_resolved_recipient_carries_address_and_channels() -> None:
    (bob,) = resolve_recipients("bob", DIRECTORY)
    assert bob.address == "bob@example.com"
    assert bob.accepts("telegram")
    assert bob.accepts("email")
    (alice,) = resolve_recipients("alice", DIRECTORY)
    assert not alice.accepts("telegram")
