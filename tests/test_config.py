import json

import pytest
from pydantic import ValidationError

from print_agent.core.config import (
    PAPER_PROFILES,
    RenderConfig,
    default_cache_path,
    default_config_path,
    get_profile,
    load_render_config,
    save_config,
)
from print_agent.core.errors import ConfigurationError


@pytest.mark.parametrize("name", ["MM_58", "mm_58", "58mm", "58", " 58MM "])
def test_profile_spellings(name):
    assert get_profile(name) is PAPER_PROFILES["MM_58"]


def test_profile_table():
    assert (get_profile("MM_76").pixel_width, get_profile("MM_76").chars_per_line) == (512, 42)
    assert (get_profile("MM_80").pixel_width, get_profile("MM_80").chars_per_line) == (576, 48)
    assert get_profile(None).name == "MM_58"


def test_unknown_profile_raises():
    with pytest.raises(ConfigurationError):
        get_profile("MM_112")


def test_xdg_paths(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    assert default_config_path() == str(tmp_path / "cfg" / "printagent" / "config.json")
    assert default_cache_path() == str(tmp_path / "cache" / "printagent" / "render-cache")


def test_defaults():
    cfg = RenderConfig.from_sources(None, env={})
    assert cfg.printer_model == "generic"
    assert cfg.cut_feed_lines == 4
    assert cfg.beep is True
    assert cfg.cache_max_age == 86400


def test_saved_then_env_precedence():
    saved = {"render": {"beep": False, "cut_feed_lines": 6, "currency": "$"}}
    env = {"PRINTAGENT_CUT_FEED_LINES": "2", "PRINTAGENT_LOG_LEVEL": "DEBUG", "HOME": "/root"}
    cfg = RenderConfig.from_sources(saved, env=env)
    assert cfg.beep is False
    assert cfg.cut_feed_lines == 2
    assert cfg.currency == "$"


def test_invalid_value_is_configuration_error():
    with pytest.raises(ConfigurationError, match="printer_model"):
        RenderConfig.from_sources({"printer_model": "laser"}, env={})


def test_config_is_immutable():
    cfg = RenderConfig(cache_path="")
    with pytest.raises(ValidationError):
        cfg.beep = False


def test_load_render_config_from_file(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    save_config({"render": {"printer_model": "no-cutter"}}, path=str(path))
    assert json.loads(path.read_text())["render"]["printer_model"] == "no-cutter"
    monkeypatch.delenv("PRINTAGENT_PRINTER_MODEL", raising=False)
    assert load_render_config(str(path)).printer_model == "no-cutter"


def test_load_render_config_bad_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{oops", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_render_config(str(path))
