"""
Tests for configuration loading and .env layering.

Tests cover:
- Defaults
- User and project JSON layers, deep-merged
- Environment variable overrides and invalid values
- Caching
- load_layered_env precedence
"""

import json
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from portalkeys.core.config import clear_cache, load_config
from portalkeys.core.config.env import load_layered_env
from portalkeys.core.config.loader import deep_merge, get_user_config_path


def _write_json(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self, tmp_path: Path) -> None:
        config = load_config(project_dir=tmp_path, use_cache=False)

        assert config.keys.scoping == "organization"
        assert config.keys.empty_name_policy == "error"
        assert config.keys.max_suffix_attempts == 999
        assert config.sequence.max_retries == 8
        assert config.store.db_path == ".portalkeys/keys.db"

    def test_user_then_project_layers(self, tmp_path: Path) -> None:
        _write_json(
            get_user_config_path(),
            {"keys": {"scoping": "sub_unit"}, "sequence": {"max_retries": 3}},
        )
        _write_json(tmp_path / ".portalkeys.json", {"sequence": {"max_retries": 5}})

        config = load_config(project_dir=tmp_path, use_cache=False)

        assert config.keys.scoping == "sub_unit"
        assert config.sequence.max_retries == 5
        assert config.sequence.retry_backoff == 1.5

    def test_env_overrides_files(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_json(tmp_path / ".portalkeys.json", {"store": {"db_path": "from-file.db"}})
        monkeypatch.setenv("PORTALKEYS_DB", "from-env.db")
        monkeypatch.setenv("PORTALKEYS_SCOPING", "sub_unit")
        monkeypatch.setenv("PORTALKEYS_MAX_RETRIES", "2")
        monkeypatch.setenv("PORTALKEYS_EMPTY_NAME_POLICY", "timestamp")

        config = load_config(project_dir=tmp_path, use_cache=False)

        assert config.store.db_path == "from-env.db"
        assert config.keys.scoping == "sub_unit"
        assert config.sequence.max_retries == 2
        assert config.keys.empty_name_policy == "timestamp"

    @pytest.mark.parametrize(
        ("var", "value"),
        [
            ("PORTALKEYS_SCOPING", "team"),
            ("PORTALKEYS_EMPTY_NAME_POLICY", "ignore"),
            ("PORTALKEYS_MAX_RETRIES", "many"),
            ("PORTALKEYS_MAX_RETRIES", "99"),
        ],
    )
    def test_invalid_env_values_ignored(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
        var: str,
        value: str,
    ) -> None:
        monkeypatch.setenv(var, value)

        with caplog.at_level("WARNING"):
            config = load_config(project_dir=tmp_path, use_cache=False)

        assert config.keys.scoping == "organization"
        assert config.keys.empty_name_policy == "error"
        assert config.sequence.max_retries == 8
        assert var in caplog.text

    def test_malformed_json_is_skipped(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        (tmp_path / ".portalkeys.json").write_text("{not json")

        with caplog.at_level("WARNING"):
            config = load_config(project_dir=tmp_path, use_cache=False)

        assert config.sequence.max_retries == 8
        assert "Failed to parse config" in caplog.text

    def test_out_of_range_file_value_rejected(self, tmp_path: Path) -> None:
        _write_json(tmp_path / ".portalkeys.json", {"sequence": {"max_retries": 50}})

        with pytest.raises(ValidationError):
            load_config(project_dir=tmp_path, use_cache=False)

    def test_cache(self, tmp_path: Path) -> None:
        first = load_config(project_dir=tmp_path)
        _write_json(tmp_path / ".portalkeys.json", {"sequence": {"max_retries": 1}})

        assert load_config(project_dir=tmp_path) is first

        clear_cache()
        assert load_config(project_dir=tmp_path).sequence.max_retries == 1


class TestDeepMerge:
    """Tests for deep_merge."""

    def test_nested_merge(self) -> None:
        base = {"keys": {"scoping": "organization", "max_suffix_attempts": 999}}
        override = {"keys": {"scoping": "sub_unit"}, "store": {"db_path": "x.db"}}

        assert deep_merge(base, override) == {
            "keys": {"scoping": "sub_unit", "max_suffix_attempts": 999},
            "store": {"db_path": "x.db"},
        }
        assert base["keys"]["scoping"] == "organization"


class TestLoadLayeredEnv:
    """Tests for load_layered_env."""

    def test_precedence(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        user_env = tmp_path / "user.env"
        user_env.write_text("PORTALKEYS_DB=user.db\nPORTALKEYS_SCOPING=sub_unit\n")
        project_env = tmp_path / ".env"
        project_env.write_text("PORTALKEYS_DB=project.db\nPORTALKEYS_MAX_RETRIES=4\n")
        monkeypatch.setenv("PORTALKEYS_MAX_RETRIES", "1")
        for var in ("PORTALKEYS_DB", "PORTALKEYS_SCOPING"):
            monkeypatch.delenv(var, raising=False)

        try:
            load_layered_env(user_env_paths=[user_env], project_env_paths=[project_env])

            assert os.environ["PORTALKEYS_DB"] == "project.db"
            assert os.environ["PORTALKEYS_SCOPING"] == "sub_unit"
            assert os.environ["PORTALKEYS_MAX_RETRIES"] == "1"
        finally:
            os.environ.pop("PORTALKEYS_DB", None)
            os.environ.pop("PORTALKEYS_SCOPING", None)

    def test_missing_files(self, tmp_path: Path) -> None:
        load_layered_env(
            user_env_paths=[tmp_path / "nope.env"], project_env_paths=[tmp_path / ".env"]
        )
