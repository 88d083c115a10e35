import pytest

from geminirelay.agent.context import DEFAULT_IMAGE_PROMPT, ContextBuilder
from geminirelay.session.history import HistoryStore


@pytest.fixture
def history(tmp_path):
    store = HistoryStore(tmp_path / "ctx.db")
    store.init_schema()
    yield store
    store.close()


def test_build_turns_without_history_is_single_user_turn(history):
    turns = ContextBuilder(history).build_turns("user-1", "Hello")

    assert [(t.role, t.text) for t in turns] == [("user", "Hello")]


def test_build_turns_prefixes_stored_group_authors(history):
    history.append("g", "user", "what time is it?", author_name="Ana")
    history.append("g", "model", "Noon.")

    turns = ContextBuilder(history).build_turns("g", "thanks", author_name="Budi")

    assert [(t.role, t.text) for t in turns] == [
        ("user", "Ana: what time is it?"),
        ("model", "Noon."),
        ("user", "Budi: thanks"),
    ]


def test_build_turns_respects_window(history):
    for i in range(6):
        history.append("k", "user" if i % 2 == 0 else "model", f"m{i}")

    turns = ContextBuilder(history, window=4).build_turns("k", "new")

    assert [t.text for t in turns] == ["m2", "m3", "m4", "m5", "new"]


def test_persona_wraps_prompt_and_substitutes_name(history):
    builder = ContextBuilder(history, persona="You are a barista serving {{name}}.")

    prompt = builder.build_prompt("one latte", author_name="Ana")

    assert prompt.startswith("Use this personality to answer:")
    assert "You are a barista serving Ana." in prompt
    assert prompt.endswith("User's Question: Ana: one latte")


def test_persona_name_falls_back_to_default(history):
    builder = ContextBuilder(history, persona="Greet {{name}} warmly.")

    assert "Greet User warmly." in builder.build_prompt("hi")


def test_blank_persona_leaves_prompt_untouched(history):
    assert ContextBuilder(history, persona="  ").build_prompt("hi") == "hi"


def test_vision_prompt_defaults_and_persona(history):
    assert ContextBuilder(history).build_vision_prompt("  ") == DEFAULT_IMAGE_PROMPT

    prompt = ContextBuilder(history, persona="Cafe bot for {{name}}").build_vision_prompt(
        "Is this on the menu?", author_name="Ana"
    )
    assert prompt.startswith("Main Instruction:")
    assert "Cafe bot for Ana" in prompt
    assert prompt.endswith("User's Question about the image:\nIs this on the menu?")
