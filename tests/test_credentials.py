from __future__ import annotations

import pytest

from visual_director.credentials import CredentialStore, api_key_from_env
from visual_director.errors import CredentialMissing


@pytest.fixture(autouse=True)
def _no_env_keys(monkeypatch) -> None:
    for name in ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY"):
        monkeypatch.delenv(name, raising=False)


def test_env_lookup_order(monkeypatch) -> None:
    monkeypatch.setenv("API_KEY", "generic")
    monkeypatch.setenv("GOOGLE_API_KEY", "google")
    assert api_key_from_env() == "google"

    monkeypatch.setenv("GEMINI_API_KEY", " gemini ")
    assert api_key_from_env() == "gemini"


def test_selected_key_wins_over_env(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "env-key")
    store = CredentialStore()
    assert store.api_key == "env-key"

    store.select("picked-key")
    assert store.api_key == "picked-key"
    assert CredentialStore("from-flag").api_key == "from-flag"


def test_clearing_selection_falls_back_to_env(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "env-key")
    store = CredentialStore("picked-key")

    store.select(None)

    assert store.api_key == "env-key"
    assert CredentialStore(use_env=False).api_key is None


def test_require_raises_without_key() -> None:
    store = CredentialStore("   ")

    assert not store.available
    with pytest.raises(CredentialMissing, match="GEMINI_API_KEY"):
        store.require()


def test_select_notifies_listeners() -> None:
    store = CredentialStore(use_env=False)
    calls: list[str] = []
    store.on_change(lambda: calls.append("reinit"))

    store.select("new-key")

    assert store.require() == "new-key"
    assert calls == ["reinit"]
