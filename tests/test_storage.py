from __future__ import annotations

from busbooker.utils.storage import StateStore


def test_token_and_identifier_are_independent(tmp_path):
    store = StateStore(tmp_path / "nested" / "state.json")
    store.save_token("tok-1")
    store.save_identifier("awa@example.ci")

    store.clear_token()

    assert store.load_token() is None
    assert store.load_identifier() == "awa@example.ci"


def test_state_survives_a_new_store(tmp_path):
    path = tmp_path / "state.json"
    StateStore(path).save_token("tok-1")
    assert StateStore(path).load_token() == "tok-1"


def test_corrupt_file_reads_as_empty(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")
    store = StateStore(path)

    assert store.load_token() is None
    store.save_token("tok-2")
    assert store.load_token() == "tok-2"
