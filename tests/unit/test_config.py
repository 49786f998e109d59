from __future__ import annotations

from pathlib import Path

import pytest

from tim.config import DEFAULT_CONFIG_NAME, load_config, resolve_tasks_dir
from tim.errors import ConfigError


def test_defaults_when_no_config_present(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    config = load_config()

    assert config["review"]["format"] == "terminal"
    assert resolve_tasks_dir(config) == tmp_path / "tasks"


def test_user_values_merge_over_defaults(tmp_path) -> None:
    config_dir = tmp_path / "project"
    config_dir.mkdir()
    config_path = config_dir / DEFAULT_CONFIG_NAME
    config_path.write_text("paths:\n  tasks: plans\nreview:\n  format: json\n", encoding="utf-8")

    config = load_config(config_path)

    assert config["review"] == {"format": "json", "verbosity": "normal", "base_branch": "main"}
    assert resolve_tasks_dir(config) == config_dir.resolve() / "plans"
    assert resolve_tasks_dir(config, Path("elsewhere")) == Path("elsewhere")


def test_absolute_tasks_path_is_kept(tmp_path) -> None:
    config_path = tmp_path / "tim.yml"
    config_path.write_text(f"paths:\n  tasks: {tmp_path / 'abs'}\n", encoding="utf-8")

    assert resolve_tasks_dir(load_config(config_path)) == tmp_path / "abs"


@pytest.mark.parametrize(
    ("content", "message"),
    [("paths: [unclosed\n", "Failed to parse"), ("- just\n- a list\n", "mapping")],
)
def test_invalid_config_raises(tmp_path, content: str, message: str) -> None:
    config_path = tmp_path / "tim.yml"
    config_path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError, match=message):
        load_config(config_path)


def test_explicit_missing_config_raises(tmp_path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "missing.yml")
