"""Tests for the configuration module."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from kiloacp.config import (
    DEFAULT_CHILD_ENV,
    Config,
    KiloConfig,
    deep_merge,
    get_config,
    load_config,
    reset_config,
)
from kiloacp.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the user config at an empty temp dir and clear override vars."""
    user_dir = tmp_path / "xdg"
    user_dir.mkdir()
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(user_dir))
    for name in ("KILO_BINARY", "KILO_ACP_LOG", "KILO_ACP_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    return user_dir


def write_yaml(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


class TestDeepMerge:
    """Test the deep merge algorithm."""

    def test_simple_override(self) -> None:
        assert deep_merge({"a": 1, "b": 2}, {"b": 3, "c": 4}) == {"a": 1, "b": 3, "c": 4}

    def test_nested_merge(self) -> None:
        base = {"kilo": {"binary": "kilo", "terminate_timeout": 5}}
        result = deep_merge(base, {"kilo": {"terminate_timeout": 1}})
        assert result["kilo"] == {"binary": "kilo", "terminate_timeout": 1}

    def test_none_does_not_override(self) -> None:
        assert deep_merge({"a": 1}, {"a": None}) == {"a": 1}

    def test_none_inside_new_section_is_dropped(self) -> None:
        """A section missing from base still has its None values stripped."""
        override = {"kilo": {"terminate_timeout": None, "env": {"CI": None, "X": "1"}}}
        assert deep_merge({}, override) == {"kilo": {"env": {"X": "1"}}}

    def test_dict_replaces_scalar(self) -> None:
        assert deep_merge({"kilo": "kilo"}, {"kilo": {"binary": "k", "env": None}}) == {
            "kilo": {"binary": "k"}
        }

    def test_list_replaced_not_merged(self) -> None:
        """Lists are replaced, not concatenated."""
        result = deep_merge({"extra_args": ["--a"]}, {"extra_args": ["--b"]})
        assert result["extra_args"] == ["--b"]

    def test_base_is_not_mutated(self) -> None:
        base = {"kilo": {"binary": "kilo"}}
        deep_merge(base, {"kilo": {"binary": "other"}})
        assert base == {"kilo": {"binary": "kilo"}}


class TestConfigPaths:
    """Test platform-aware path resolution."""

    def test_windows_paths(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "win32")
        monkeypatch.setenv("PROGRAMDATA", "C:\\ProgramData")
        monkeypatch.setenv("APPDATA", "C:\\Users\\Test\\AppData\\Roaming")

        system = get_system_config_path()
        user = get_user_config_path()
        assert system is not None and "ProgramData" in str(system)
        assert user is not None and "AppData" in str(user)
        assert "kilo-acp" in str(user)

    def test_windows_without_appdata(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "win32")
        monkeypatch.delenv("APPDATA", raising=False)
        assert get_user_config_path() is None

    def test_unix_system_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        assert get_system_config_path() == Path("/etc/kilo-acp/config.yaml")

    def test_unix_user_path_xdg(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", "/home/test/.config-custom")
        assert get_user_config_path() == Path("/home/test/.config-custom/kilo-acp/config.yaml")

    def test_unix_user_path_dotdir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_user_config_path() == tmp_path / ".kilo-acp" / "config.yaml"

    def test_project_config_path(self) -> None:
        path = get_project_config_path("/home/user/myproject")
        assert path == Path("/home/user/myproject/.kilo-acp/config.yaml")

    def test_get_config_paths_order(self, isolated_env: Path) -> None:
        paths = get_config_paths("/work")
        assert paths[0] == Path("/etc/kilo-acp/config.yaml")
        assert paths[1] == isolated_env / "kilo-acp" / "config.yaml"
        assert paths[-1] == Path("/work/.kilo-acp/config.yaml")


class TestLoadConfig:
    """Loading, merging and overriding."""

    def test_defaults(self, isolated_env: Path) -> None:
        config = load_config()
        assert isinstance(config, Config)
        assert config.kilo.binary == "kilo"
        assert config.kilo.extra_args == []
        assert config.kilo.terminate_timeout == 5.0
        assert config.session.max_event_log is None
        assert config.logging.level is None

    def test_user_then_project_override(self, isolated_env: Path, tmp_path: Path) -> None:
        write_yaml(
            isolated_env / "kilo-acp" / "config.yaml",
            "kilo:\n  binary: /usr/local/bin/kilo\n  terminate_timeout: 3\nlogging:\n  level: DEBUG\n",
        )
        project = tmp_path / "project"
        write_yaml(
            project / ".kilo-acp" / "config.yaml",
            "kilo:\n  extra_args: [--model, fast]\nsession:\n  max_event_log: 100\n",
        )

        config = load_config(session_root=str(project))

        assert config.kilo.binary == "/usr/local/bin/kilo"
        assert config.kilo.terminate_timeout == 3.0
        assert config.kilo.extra_args == ["--model", "fast"]
        assert config.session.max_event_log == 100
        assert config.logging.level == "DEBUG"

    def test_env_overrides_files(self, isolated_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        write_yaml(isolated_env / "kilo-acp" / "config.yaml", "kilo:\n  binary: from-file\n")
        monkeypatch.setenv("KILO_BINARY", "/env/kilo")
        monkeypatch.setenv("KILO_ACP_LOG", "/tmp/kilo-acp.log")
        monkeypatch.setenv("KILO_ACP_LOG_LEVEL", "TRACE")

        config = load_config()

        assert config.kilo.binary == "/env/kilo"
        assert config.logging.file == "/tmp/kilo-acp.log"
        assert config.logging.level == "TRACE"

    def test_invalid_yaml_falls_back_to_defaults(self, isolated_env: Path) -> None:
        write_yaml(isolated_env / "kilo-acp" / "config.yaml", "kilo: [unclosed\n")
        assert load_config().kilo.binary == "kilo"

    def test_non_mapping_yaml_is_ignored(self, isolated_env: Path) -> None:
        write_yaml(isolated_env / "kilo-acp" / "config.yaml", "- just\n- a list\n")
        assert load_config().kilo.binary == "kilo"

    def test_unknown_sections_are_kept_as_extra(self, isolated_env: Path) -> None:
        write_yaml(isolated_env / "kilo-acp" / "config.yaml", "editor:\n  theme: dark\n")
        assert load_config().extra == {"editor": {"theme": "dark"}}

    def test_null_terminate_timeout_keeps_default(self, isolated_env: Path) -> None:
        write_yaml(isolated_env / "kilo-acp" / "config.yaml", "kilo:\n  terminate_timeout: null\n")
        assert load_config().kilo.terminate_timeout == 5.0

    def test_global_config_is_cached(self, isolated_env: Path) -> None:
        first = get_config()
        write_yaml(isolated_env / "kilo-acp" / "config.yaml", "kilo:\n  binary: changed\n")
        assert get_config() is first
        assert load_config(reload=True).kilo.binary == "changed"
        reset_config()
        assert get_config().kilo.binary == "changed"

    def test_project_config_is_not_cached(self, isolated_env: Path, tmp_path: Path) -> None:
        project = tmp_path / "project"
        write_yaml(project / ".kilo-acp" / "config.yaml", "kilo:\n  binary: project-kilo\n")

        assert load_config(session_root=str(project)).kilo.binary == "project-kilo"
        assert get_config().kilo.binary == "kilo"


class TestKiloConfig:
    """Tests for the kilo section."""

    def test_child_env_defaults(self) -> None:
        assert KiloConfig().child_env() == DEFAULT_CHILD_ENV
        assert DEFAULT_CHILD_ENV == {"TERM": "dumb", "CI": "true"}

    def test_child_env_user_values_win(self) -> None:
        env = KiloConfig(env={"CI": "false", "KILO_PROFILE": "work"}).child_env()
        assert env == {"TERM": "dumb", "CI": "false", "KILO_PROFILE": "work"}
