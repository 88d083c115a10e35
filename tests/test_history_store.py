import pytest

from geminirelay.session.history import DEFAULT_LANGUAGE, HISTORY_WINDOW, HistoryStore


@pytest.fixture
def store(tmp_path):
    s = HistoryStore(tmp_path / "bot_store.db")
    s.init_schema()
    yield s
    s.close()


def test_recent_returns_last_window_oldest_first(store):
    for i in range(25):
        role = "user" if i % 2 == 0 else "model"
        store.append("chat-1", role, f"m{i}")

    turns = store.recent("chat-1")

    assert len(turns) == HISTORY_WINDOW
    assert [t.text for t in turns] == [f"m{i}" for i in range(5, 25)]
    assert turns[0].role == "model"
    assert turns[-1].role == "user"


def test_recent_respects_explicit_limit(store):
    for i in range(5):
        store.append("k", "user", f"m{i}")

    assert [t.text for t in store.recent("k", 2)] == ["m3", "m4"]
    assert store.recent("k", 0) == []


def test_histories_are_isolated_by_key(store):
    store.append("group@g", "user", "in group", author_name="Ana")
    store.append("user-1", "user", "direct")

    group = store.recent("group@g")
    assert [t.text for t in group] == ["in group"]
    assert group[0].author_name == "Ana"
    assert [t.text for t in store.recent("user-1")] == ["direct"]


def test_blank_text_and_unknown_role_are_not_stored(store):
    store.append("k", "user", "   ")
    store.append("k", "model", "")
    store.append("k", "system", "nope")

    assert store.recent("k") == []


def test_delete_all_clears_only_that_key(store):
    store.append("a", "user", "one")
    store.append("b", "user", "two")

    assert store.delete_all("a") is True
    assert store.recent("a") == []
    assert [t.text for t in store.recent("b")] == ["two"]


def test_language_defaults_then_persists(store):
    assert store.get_language("user-1") == DEFAULT_LANGUAGE

    assert store.set_language("user-1", "id") is True
    assert store.get_language("user-1") == "id"

    assert store.set_language("user-1", "en") is True
    assert store.get_language("user-1") == "en"


def test_language_survives_reopen(tmp_path):
    path = tmp_path / "store.db"
    first = HistoryStore(path)
    first.init_schema()
    first.set_language("user-9", "id")
    first.append("user-9", "user", "hello")
    first.close()

    second = HistoryStore(path)
    second.init_schema()
    try:
        assert second.get_language("user-9") == "id"
        assert [t.text for t in second.recent("user-9")] == ["hello"]
    finally:
        second.close()


def test_failures_degrade_without_raising(tmp_path):
    s = HistoryStore(tmp_path / "closed.db")
    s.init_schema()
    s.close()

    s.append("k", "user", "lost")
    assert s.recent("k") == []
    assert s.delete_all("k") is False
    assert s.get_language("k") == DEFAULT_LANGUAGE
    assert s.set_language("k", "id") is False
