"""
Configuration loading for the cost center automation.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import yaml

DEFAULT_API_BASE_URL = "https://api.github.com"
DEFAULT_COST_CENTER_MODE = "users"
DEFAULT_TEAMS_SCOPE = "enterprise"
DEFAULT_TEAMS_MODE = "auto"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_EXPORT_DIR = "exports"
DEFAULT_NO_PRUS_COST_CENTER_ID = "CC-001-NO-PRUS"
DEFAULT_PRUS_ALLOWED_COST_CENTER_ID = "CC-002-PRUS-ALLOWED"
DEFAULT_NO_PRU_COST_CENTER_NAME = "00 - No PRU overages"
DEFAULT_PRU_ALLOWED_COST_CENTER_NAME = "01 - PRU overages allowed"
DEFAULT_BUDGET_PRODUCTS = {
    "copilot": {"amount": 100, "enabled": True},
    "actions": {"amount": 125, "enabled": True},
}

TIMESTAMP_FILE_NAME = ".last_run_timestamp"

PLACEHOLDER_ENTERPRISES = {"", "REPLACE_WITH_ENTERPRISE_SLUG", "your_enterprise_name"}
PLACEHOLDER_COST_CENTER_IDS = {
    "no_prus_cost_center_id": ("REPLACE_WITH_NO_PRUS_COST_CENTER_ID", DEFAULT_NO_PRUS_COST_CENTER_ID),
    "prus_allowed_cost_center_id": ("REPLACE_WITH_PRUS_ALLOWED_COST_CENTER_ID", DEFAULT_PRUS_ALLOWED_COST_CENTER_ID),
}


def _first_set(*values: Any) -> Any:
    for value in values:
        if value not in (None, ""):
            return value
    return None


class RepositoryConfig:
    """Explicit property-value -> cost center mappings for repository mode."""

    def __init__(self, explicit_mappings: List[Dict]):
        self.explicit_mappings = explicit_mappings

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "RepositoryConfig":
        mappings = (data or {}).get("explicit_mappings") or []
        for index, mapping in enumerate(mappings):
            if not mapping.get("cost_center"):
                raise ValueError(f"explicit_mappings[{index}]: missing 'cost_center'")
            if not mapping.get("property_name"):
                raise ValueError(f"explicit_mappings[{index}]: missing 'property_name'")
            if not mapping.get("property_values"):
                raise ValueError(f"explicit_mappings[{index}]: missing 'property_values'")
        return cls(mappings)


class ConfigManager:
    """Loads config.yaml, applies environment overrides and exposes resolved settings."""

    def __init__(self, config_path: str = "config/config.yaml"):
        self.logger = logging.getLogger(__name__)
        self.config_path = Path(config_path)
        self.raw = self._load_file()
        self._resolve()

    def _load_file(self) -> Dict:
        if not self.config_path.exists():
            self.logger.warning(f"Config file not found at {self.config_path}, using defaults")
            return {}

        with open(self.config_path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Failed to parse config file {self.config_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {self.config_path} must contain a mapping at the top level")
        return data

    def _resolve(self) -> None:
        github = self.raw.get("github") or {}
        cost_centers = self.raw.get("cost_centers") or {}
        teams = self.raw.get("teams") or {}
        budgets = self.raw.get("budgets") or {}
        logging_cfg = self.raw.get("logging") or {}

        # GitHub
        self.github_token = _first_set(os.environ.get("GITHUB_TOKEN"), github.get("token"))

        enterprise = _first_set(os.environ.get("GITHUB_ENTERPRISE"), github.get("enterprise")) or ""
        if enterprise in PLACEHOLDER_ENTERPRISES:
            raise ValueError(
                "GitHub enterprise must be configured (set GITHUB_ENTERPRISE or github.enterprise in the config file)"
            )
        self.github_enterprise = enterprise

        api_url = _first_set(os.environ.get("GITHUB_API_BASE_URL"), github.get("api_base_url")) or DEFAULT_API_BASE_URL
        self.github_api_base_url = self._validate_api_url(api_url)

        cost_center_mode_cfg = github.get("cost_centers") or {}
        self.github_cost_centers_mode = cost_center_mode_cfg.get("mode") or DEFAULT_COST_CENTER_MODE
        self.github_cost_centers_repository_config = None
        if self.github_cost_centers_mode == "repository":
            self.github_cost_centers_repository_config = RepositoryConfig.from_dict(
                cost_center_mode_cfg.get("repository_config")
            )
            self.logger.info(
                f"Repository mode enabled with "
                f"{len(self.github_cost_centers_repository_config.explicit_mappings)} mappings"
            )

        # PRU cost centers (old key names still honoured)
        self.no_prus_cost_center_id = _first_set(
            cost_centers.get("no_prus_cost_center_id"), cost_centers.get("no_prus_cost_center"),
            DEFAULT_NO_PRUS_COST_CENTER_ID,
        )
        self.prus_allowed_cost_center_id = _first_set(
            cost_centers.get("prus_allowed_cost_center_id"), cost_centers.get("prus_allowed_cost_center"),
            DEFAULT_PRUS_ALLOWED_COST_CENTER_ID,
        )
        self.no_pru_cost_center_name = _first_set(
            cost_centers.get("no_prus_cost_center_name"), cost_centers.get("no_pru_name"),
            DEFAULT_NO_PRU_COST_CENTER_NAME,
        )
        self.pru_allowed_cost_center_name = _first_set(
            cost_centers.get("prus_allowed_cost_center_name"), cost_centers.get("pru_allowed_name"),
            DEFAULT_PRU_ALLOWED_COST_CENTER_NAME,
        )
        self.prus_exception_users = list(cost_centers.get("prus_exception_users") or [])
        self.auto_create_cost_centers = bool(cost_centers.get("auto_create", False))
        self.enable_incremental = bool(cost_centers.get("enable_incremental", False))

        # Teams
        self.teams_enabled = bool(teams.get("enabled", False))
        self.teams_scope = teams.get("scope") or DEFAULT_TEAMS_SCOPE
        self.teams_mode = teams.get("mode") or DEFAULT_TEAMS_MODE
        self.teams_organizations = list(teams.get("organizations") or [])
        self.teams_auto_create = bool(teams.get("auto_create_cost_centers", False))
        self.teams_mappings = dict(teams.get("team_mappings") or {})
        remove_users = teams.get("remove_users_no_longer_in_teams")
        if remove_users is None:
            remove_users = teams.get("remove_orphaned_users", True)
        self.teams_remove_users_no_longer_in_teams = bool(remove_users)

        # Budgets
        self.budgets_enabled = bool(budgets.get("enabled", False))
        self.budget_products = budgets.get("products") or {k: dict(v) for k, v in DEFAULT_BUDGET_PRODUCTS.items()}

        # Logging / export
        self.log_level = logging_cfg.get("level") or DEFAULT_LOG_LEVEL
        self.log_file = logging_cfg.get("file")
        self.export_dir = self.raw.get("export_dir") or DEFAULT_EXPORT_DIR
        self.timestamp_file = Path(self.export_dir) / TIMESTAMP_FILE_NAME

    def _validate_api_url(self, url: str) -> str:
        """Normalize the API base URL and log which GitHub flavour it points to."""
        url = url.rstrip("/")
        if not url.startswith("https://"):
            raise ValueError(f"GitHub API base URL must use HTTPS: {url}")

        host = urlparse(url).hostname or ""
        if url == DEFAULT_API_BASE_URL:
            self.logger.info(f"Using standard GitHub API: {url}")
        elif host.endswith(".ghe.com"):
            subdomain = host[len("api."):-len(".ghe.com")] if host.startswith("api.") else ""
            if not subdomain:
                raise ValueError(
                    f"GitHub Enterprise Data Resident API URL should match 'https://api.{{subdomain}}.ghe.com', got: {url}"
                )
            self.logger.info(f"Using GitHub Enterprise Data Resident API ({subdomain}): {url}")
        elif "/api/v3" in url:
            self.logger.info(f"Using GitHub Enterprise Server API: {url}")
        else:
            self.logger.warning(
                f"Using custom GitHub API URL (non-standard pattern): {url}. Expected "
                "https://api.github.com | https://api.{subdomain}.ghe.com | https://{hostname}/api/v3"
            )
        return url

    def enable_auto_creation(self) -> None:
        """Turn on cost center auto-creation (--create-cost-centers)."""
        self.auto_create_cost_centers = True

    def check_config_warnings(self) -> None:
        """Warn about placeholder cost center IDs left in the configuration."""
        if self.auto_create_cost_centers:
            return

        for field, placeholders in PLACEHOLDER_COST_CENTER_IDS.items():
            value = getattr(self, field)
            if value in placeholders:
                self.logger.warning(
                    f"{field} appears to be a placeholder ('{value}') - update the config file with real "
                    "cost center IDs before applying"
                )

        if not self.prus_exception_users:
            self.logger.info(
                "No PRUs exception users configured - all users will be assigned to the default no_prus cost center"
            )

    def save_last_run_timestamp(self, timestamp: Optional[datetime] = None) -> None:
        """Persist the last successful run time for incremental processing."""
        now = datetime.now(timezone.utc)
        timestamp = timestamp or now
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        self.timestamp_file.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "last_run": timestamp.astimezone(timezone.utc).isoformat(),
            "saved_at": now.isoformat(),
        }
        with open(self.timestamp_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

        self.logger.info(f"Saved last run timestamp: {data['last_run']}")

    def load_last_run_timestamp(self) -> Optional[datetime]:
        """Return the last run time, or None when there is no previous run."""
        if not self.timestamp_file.exists():
            self.logger.info("No previous run timestamp found - will process all users")
            return None

        with open(self.timestamp_file, "r", encoding="utf-8") as f:
            data = json.load(f)

        last_run = data.get("last_run")
        if not last_run:
            self.logger.warning("Invalid timestamp file format")
            return None

        timestamp = datetime.fromisoformat(last_run.replace("Z", "+00:00"))
        self.logger.info(f"Loaded last run timestamp: {last_run}")
        return timestamp

    def summary(self) -> Dict[str, Any]:
        """Resolved settings for display (no secrets)."""
        summary = {
            "enterprise": self.github_enterprise,
            "api_base_url": self.github_api_base_url,
            "cost_center_mode": self.github_cost_centers_mode,
            "no_prus_cost_center_id": self.no_prus_cost_center_id,
            "prus_allowed_cost_center_id": self.prus_allowed_cost_center_id,
            "prus_exception_users_count": len(self.prus_exception_users),
            "auto_create": self.auto_create_cost_centers,
            "enable_incremental": self.enable_incremental,
            "teams_enabled": self.teams_enabled,
            "teams_scope": self.teams_scope,
            "teams_mode": self.teams_mode,
            "budgets_enabled": self.budgets_enabled,
            "log_level": self.log_level,
            "export_dir": self.export_dir,
        }
        base = f"https://github.com/enterprises/{self.github_enterprise}/billing/cost_centers"
        summary["no_prus_cost_center_url"] = f"{base}/{self.no_prus_cost_center_id}"
        summary["prus_allowed_cost_center_url"] = f"{base}/{self.prus_allowed_cost_center_id}"
        return summary
