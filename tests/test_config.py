"""Tests for configuration loading."""

import os
from unittest.mock import patch

import pytest

from pr_automerge.config import Settings, load_config
from pr_automerge.errors import ConfigurationError
from pr_automerge.models import MergeMethod

VALID_CONFIG = """
owner = "org"
dry_run = true

[[repos]]
name = "bors"
needs_description_label = "needs-description"
required_statuses = ["ci/build", "ci/test"]
ci_passed_label = "ci-passed"
reviewed_label = "reviewed"
block_merge_label = ""
automerge_grace_period = 60
merge_method = "Squash"

[[repos]]
name = "other"
"""


@pytest.fixture
def write_config(tmp_path):
    def write(content: str):
        path = tmp_path / "automerge.toml"
        path.write_text(content)
        return path

    return write


class TestLoadConfig:
    """Tests for load_config."""

    def test_valid(self, write_config):
        config = load_config(write_config(VALID_CONFIG))

        assert config.owner == "org"
        assert config.dry_run is True
        assert [repo.name for repo in config.repos] == ["bors", "other"]

        bors = config.repo("bors")
        assert bors.required_statuses == ["ci/build", "ci/test"]
        assert bors.block_merge_label is None
        assert bors.automerge_grace_period == 60
        assert bors.merge_method == MergeMethod.SQUASH

        other = config.repo("other")
        assert other.reviewed_label is None
        assert other.merge_method == MergeMethod.MERGE

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Unable to read"):
            load_config(tmp_path / "missing.toml")

    def test_invalid_toml(self, write_config):
        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            load_config(write_config("owner = "))

    def test_invalid_config(self, write_config):
        content = 'owner = "org"\n[[repos]]\nautomerge_grace_period = 5\n'
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_config(write_config(content))


class TestSettings:
    """Tests for environment settings."""

    def test_from_env(self):
        env = {"GITHUB_TOKEN": " env-token ", "AUTOMERGE_CONFIG": "/etc/bors.toml"}
        with patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)
        assert settings.token == "env-token"
        assert settings.automerge_config == "/etc/bors.toml"
        assert settings.log_level == "INFO"

    def test_no_token(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)
        assert settings.token is None

    def test_blank_token(self):
        settings = Settings(_env_file=None, github_token="  ")
        assert settings.token is None
