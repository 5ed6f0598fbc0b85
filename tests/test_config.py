import pytest

from crxfetch.config import Config


def test_shipped_defaults(monkeypatch):
    for var in Config.ENV_MAPPINGS:
        monkeypatch.delenv(var, raising=False)

    config = Config()

    assert config.fetcher["chrome_version"] == "114.0.5735.133"
    assert config.fetcher["max_redirects"] == 5
    assert config.get("output", "directory") == "extensions"
    assert config.worker["concurrency"] == 4
    assert config.get("fetcher", "missing", default="x") == "x"


def test_env_overrides_are_typed(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("fetcher:\n  timeout: 30.0\n")
    monkeypatch.setenv("CRXFETCH_TIMEOUT", "2.5")
    monkeypatch.setenv("CRXFETCH_MAX_REDIRECTS", "9")
    monkeypatch.setenv("CRXFETCH_CHROME_VERSION", "120.0.6099.71")
    monkeypatch.setenv("CRXFETCH_OUTPUT_DIR", "out")

    config = Config(path)

    assert config.fetcher["timeout"] == 2.5
    assert config.fetcher["max_redirects"] == 9
    assert config.fetcher["chrome_version"] == "120.0.6099.71"
    assert config.output == {"directory": "out"}


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config(tmp_path / "nope.yaml")


@pytest.mark.parametrize("content", ["fetcher: [unclosed", "- just\n- a list\n"])
def test_invalid_yaml(tmp_path, content):
    path = tmp_path / "config.yaml"
    path.write_text(content)

    with pytest.raises(ValueError):
        Config(path)


def test_empty_file_is_empty_config(tmp_path, monkeypatch):
    for var in Config.ENV_MAPPINGS:
        monkeypatch.delenv(var, raising=False)
    path = tmp_path / "config.yaml"
    path.write_text("")

    config = Config(path)

    assert config.fetcher == {}
    assert config.logging == {}
