"""Tests for configuration loading."""

from datetime import datetime, timezone

import pytest
import yaml

from cost_center_automation.config_manager import (
    DEFAULT_API_BASE_URL,
    DEFAULT_NO_PRU_COST_CENTER_NAME,
    ConfigManager,
    RepositoryConfig,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("GITHUB_TOKEN", "GITHUB_ENTERPRISE", "GITHUB_API_BASE_URL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def write_config(tmp_path):
    def factory(data):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        return str(path)
    return factory


def minimal(**extra):
    data = {"github": {"enterprise": "acme-corp"}, "export_dir": "exports"}
    data.update(extra)
    return data


class TestLoading:
    def test_defaults(self, write_config):
        config = ConfigManager(write_config(minimal()))
        assert config.github_enterprise == "acme-corp"
        assert config.github_api_base_url == DEFAULT_API_BASE_URL
        assert config.github_cost_centers_mode == "users"
        assert config.no_pru_cost_center_name == DEFAULT_NO_PRU_COST_CENTER_NAME
        assert config.teams_remove_users_no_longer_in_teams is True
        assert set(config.budget_products) == {"copilot", "actions"}

    def test_env_overrides_file(self, write_config, monkeypatch):
        monkeypatch.setenv("GITHUB_ENTERPRISE", "from-env")
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")
        config = ConfigManager(write_config(minimal()))
        assert config.github_enterprise == "from-env"
        assert config.github_token == "ghp_env"

    def test_missing_file_without_enterprise(self, tmp_path):
        with pytest.raises(ValueError):
            ConfigManager(str(tmp_path / "missing.yaml"))

    def test_missing_file_with_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GITHUB_ENTERPRISE", "from-env")
        assert ConfigManager(str(tmp_path / "missing.yaml")).github_enterprise == "from-env"

    def test_placeholder_enterprise_rejected(self, write_config):
        with pytest.raises(ValueError):
            ConfigManager(write_config({"github": {"enterprise": "REPLACE_WITH_ENTERPRISE_SLUG"}}))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("github: [unclosed", encoding="utf-8")
        with pytest.raises(ValueError):
            ConfigManager(str(path))

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError):
            ConfigManager(str(path))

    def test_legacy_keys(self, write_config):
        config = ConfigManager(write_config(minimal(
            cost_centers={"no_prus_cost_center": "old-1", "prus_allowed_cost_center": "old-2"},
            teams={"remove_orphaned_users": False},
        )))
        assert config.no_prus_cost_center_id == "old-1"
        assert config.prus_allowed_cost_center_id == "old-2"
        assert config.teams_remove_users_no_longer_in_teams is False


class TestApiUrl:
    @pytest.mark.parametrize("url,expected", [
        ("https://api.github.com/", "https://api.github.com"),
        ("https://api.octocorp.ghe.com", "https://api.octocorp.ghe.com"),
        ("https://github.example.com/api/v3", "https://github.example.com/api/v3"),
        ("https://proxy.example.com/github", "https://proxy.example.com/github"),
    ])
    def test_accepted(self, write_config, url, expected):
        config = ConfigManager(write_config(minimal(github={"enterprise": "acme", "api_base_url": url})))
        assert config.github_api_base_url == expected

    @pytest.mark.parametrize("url", ["http://api.github.com", "https://octocorp.ghe.com"])
    def test_rejected(self, write_config, url):
        with pytest.raises(ValueError):
            ConfigManager(write_config(minimal(github={"enterprise": "acme", "api_base_url": url})))


class TestRepositoryConfig:
    def test_repository_mode(self, write_config):
        config = ConfigManager(write_config(minimal(github={
            "enterprise": "acme",
            "cost_centers": {"mode": "repository", "repository_config": {"explicit_mappings": [
                {"cost_center": "Platform", "property_name": "team", "property_values": ["platform"]},
            ]}},
        })))
        assert config.github_cost_centers_mode == "repository"
        assert len(config.github_cost_centers_repository_config.explicit_mappings) == 1

    @pytest.mark.parametrize("missing", ["cost_center", "property_name", "property_values"])
    def test_incomplete_mapping(self, missing):
        mapping = {"cost_center": "Platform", "property_name": "team", "property_values": ["platform"]}
        del mapping[missing]
        with pytest.raises(ValueError):
            RepositoryConfig.from_dict({"explicit_mappings": [mapping]})


class TestTimestamp:
    def test_round_trip(self, write_config, tmp_path):
        config = ConfigManager(write_config(minimal(export_dir=str(tmp_path / "exports"))))
        assert config.load_last_run_timestamp() is None

        moment = datetime(2024, 6, 1, 12, 30, tzinfo=timezone.utc)
        config.save_last_run_timestamp(moment)
        assert config.load_last_run_timestamp() == moment

    def test_summary_urls(self, write_config):
        config = ConfigManager(write_config(minimal(cost_centers={"no_prus_cost_center_id": "cc-1"})))
        assert config.summary()["no_prus_cost_center_url"] == \
            "https://github.com/enterprises/acme-corp/billing/cost_centers/cc-1"
