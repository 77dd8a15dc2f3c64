"""
Tests for tagctl.config — configuration loading, validation and resolvers.

Author: tagctl developers
"""

import json
import os
import pytest

from tagctl.config import (
    QueryConfig,
    StoreConfig,
    TagctlConfig,
    ValidationError,
    load_config,
    open_storage,
    resolve_db_path,
    resolve_root_path,
)


class TestLoadConfig:
    def test_load_valid_json(self, tmp_path):
        """Parses all sections from a valid JSON config."""
        cfg_data = {
            "store": {"db_path": "/tmp/tags.db", "root_path": "/srv/photos"},
            "query": {"explicit_only": True, "default_sort": "size"},
        }
        path = str(tmp_path / "config.json")
        with open(path, "w") as f:
            json.dump(cfg_data, f)

        cfg = load_config(path)
        assert cfg.store.db_path == "/tmp/tags.db"
        assert cfg.store.root_path == "/srv/photos"
        assert cfg.query.explicit_only is True
        assert cfg.query.default_sort == "size"

    def test_load_missing_file(self, tmp_path):
        """Returns defaults silently when file is missing."""
        path = str(tmp_path / "nonexistent.json")
        cfg = load_config(path)
        assert isinstance(cfg, TagctlConfig)
        assert cfg.store.db_path == ".tagctl/db.sqlite"
        assert cfg.query.explicit_only is False

    def test_load_invalid_json(self, tmp_path):
        """Returns defaults silently when file has invalid JSON."""
        path = str(tmp_path / "bad.json")
        with open(path, "w") as f:
            f.write("not json {{{")
        cfg = load_config(path)
        assert isinstance(cfg, TagctlConfig)
        assert cfg.query.default_sort == "name"

    def test_unknown_key_falls_back(self, tmp_path):
        """Unknown keys in a section are a TypeError -> defaults."""
        path = str(tmp_path / "unknown.json")
        with open(path, "w") as f:
            json.dump({"store": {"colour": "blue"}}, f)
        cfg = load_config(path)
        assert cfg.store == StoreConfig()

    def test_partial_config(self, tmp_path):
        """Missing sections get defaults."""
        path = str(tmp_path / "partial.json")
        with open(path, "w") as f:
            json.dump({"query": {"default_sort": "time"}}, f)

        cfg = load_config(path)
        assert cfg.query.default_sort == "time"
        assert cfg.store.wal_mode is True

    def test_none_path_returns_defaults(self):
        cfg = load_config(None)
        assert cfg == TagctlConfig()


class TestValidation:
    def test_defaults_valid(self):
        assert TagctlConfig().validate() == []

    def test_relative_root_rejected(self):
        errors = StoreConfig(root_path="photos").validate()
        assert any("root_path" in e for e in errors)

    def test_empty_db_path_rejected(self):
        errors = StoreConfig(db_path="").validate()
        assert any("db_path" in e for e in errors)

    def test_unknown_sort_rejected(self):
        errors = QueryConfig(default_sort="colour").validate()
        assert any("default_sort" in e for e in errors)

    def test_strict_raises(self, tmp_path):
        path = str(tmp_path / "bad_sort.json")
        with open(path, "w") as f:
            json.dump({"query": {"default_sort": "colour"}}, f)
        with pytest.raises(ValidationError, match="default_sort"):
            load_config(path, strict=True)

    def test_strict_valid_passes(self, tmp_path):
        path = str(tmp_path / "ok.json")
        with open(path, "w") as f:
            json.dump({"query": {"default_sort": "id"}}, f)
        cfg = load_config(path, strict=True)
        assert cfg.query.default_sort == "id"

    def test_validation_error_is_value_error(self):
        assert issubclass(ValidationError, ValueError)


class TestResolvers:
    def test_explicit_wins(self, monkeypatch):
        monkeypatch.setenv("TAGCTL_DB", "/env/tags.db")
        assert resolve_db_path("/cli/tags.db") == "/cli/tags.db"

    def test_env_over_config(self, monkeypatch):
        monkeypatch.setenv("TAGCTL_DB", "/env/tags.db")
        cfg = TagctlConfig(store=StoreConfig(db_path="/cfg/tags.db"))
        assert resolve_db_path(cfg=cfg) == "/env/tags.db"

    def test_config_fallback(self, monkeypatch):
        monkeypatch.delenv("TAGCTL_DB", raising=False)
        cfg = TagctlConfig(store=StoreConfig(db_path="/cfg/tags.db"))
        assert resolve_db_path(cfg=cfg) == "/cfg/tags.db"

    def test_root_from_env(self, monkeypatch):
        monkeypatch.setenv("TAGCTL_ROOT", "/srv/photos")
        assert resolve_root_path() == "/srv/photos"

    def test_root_default_empty(self, monkeypatch):
        monkeypatch.delenv("TAGCTL_ROOT", raising=False)
        assert resolve_root_path() == ""


class TestOpenStorage:
    def test_open_storage_from_config(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TAGCTL_DB", raising=False)
        monkeypatch.delenv("TAGCTL_ROOT", raising=False)
        db_path = str(tmp_path / "sub" / "tags.db")
        cfg = TagctlConfig(
            store=StoreConfig(db_path=db_path, root_path="/srv/photos"),
            query=QueryConfig(explicit_only=True, default_sort="size"),
        )
        db, storage = open_storage(cfg)
        try:
            assert os.path.exists(db_path)
            assert storage.root_path == "/srv/photos"
            assert storage.explicit_only is True
            assert storage.default_sort == "size"
        finally:
            db.close()
