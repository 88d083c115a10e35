import pytest

from geminirelay.config.loader import ConfigError, load_config


def test_load_config_from_env_mapping():
    cfg = load_config({
        "GEMINI_API_KEYS": "k1,k2",
        "GEMINI_CHAT_MODEL": "gemini-test",
        "KNOWLEDGE_ENABLED": "TRUE",
        "KNOWLEDGE_FILE": "knowledge.yaml",
        "STORE_LATITUDE": "-6.2",
        "STORE_LONGITUDE": "106.8",
        "MENU_IMAGE_PATH": "menu.jpg",
        "TELEGRAM_BOT_TOKEN": "123:abc",
        "TELEGRAM_SEND_TIMEOUT": "5",
        "DATABASE_PATH": "/tmp/relay.db",
    })

    assert cfg.gemini.api_keys == ["k1", "k2"]
    assert cfg.gemini.chat_model == "gemini-test"
    assert cfg.gemini.vision_model == "gemini-2.5-flash"
    assert cfg.knowledge.enabled is True
    assert cfg.knowledge.file == "knowledge.yaml"
    assert cfg.store.has_location is True
    assert cfg.store.menu_image_path == "menu.jpg"
    assert cfg.telegram.token == "123:abc"
    assert cfg.telegram.send_timeout == 5.0
    assert cfg.database_path == "/tmp/relay.db"


@pytest.mark.parametrize("keys", ["", " , ,"])
def test_missing_keys_is_a_config_error(keys):
    with pytest.raises(ConfigError):
        load_config({"GEMINI_API_KEYS": keys})


def test_bad_numbers_fall_back_to_defaults():
    cfg = load_config({
        "GEMINI_API_KEYS": "k1",
        "STORE_LATITUDE": "north",
        "TELEGRAM_SEND_TIMEOUT": "-3",
    })

    assert cfg.store.latitude == 0.0
    assert cfg.telegram.send_timeout == 10.0


def test_knowledge_disabled_unless_true():
    assert load_config({"GEMINI_API_KEYS": "k", "KNOWLEDGE_ENABLED": "yes"}).knowledge.enabled is False


def test_load_config_reads_dotenv(tmp_path, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEYS", raising=False)
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("GEMINI_API_KEYS=a,b,c\nTELEGRAM_BOT_TOKEN=42:xyz\n")

    try:
        cfg = load_config(dotenv_path=str(env_file))
    finally:
        monkeypatch.delenv("GEMINI_API_KEYS", raising=False)
        monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)

    assert cfg.gemini.api_keys == ["a", "b", "c"]
    assert cfg.telegram.token == "42:xyz"
