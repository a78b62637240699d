"""Tests for repository-based cost center assignment."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from cost_center_automation.config_manager import RepositoryConfig
from cost_center_automation.github_api import BudgetsAPIUnavailableError
from cost_center_automation.repository_cost_center_manager import RepositoryCostCenterManager, get_property_value
from cost_center_automation.transport import TerminalAPIError

from conftest import FakeResponse, body_of, enterprise_path


def repo(name, **properties):
    return {
        "repository_name": name,
        "repository_full_name": f"acme/{name}",
        "properties": [{"property_name": k, "value": v} for k, v in properties.items()],
    }


@pytest.fixture
def config():
    return SimpleNamespace(github_cost_centers_repository_config=RepositoryConfig([
        {"cost_center": "Platform", "property_name": "team", "property_values": ["platform", "infra"]},
        {"cost_center": "Production", "property_name": "environment", "property_values": ["production"]},
    ]))


@pytest.fixture
def github_manager():
    manager = MagicMock()
    manager.get_all_org_repositories_with_properties.return_value = [
        repo("api", team="platform", environment="production"),
        repo("terraform", team="infra"),
        repo("website", team="marketing"),
        repo("pipelines", environment=["staging", "production"]),
        repo("bare"),
    ]
    manager.get_all_active_cost_centers.return_value = {"Platform": "cc-platform"}
    manager.ensure_cost_center.side_effect = lambda name, active: active.setdefault(name, f"id-{name}")
    manager.add_repositories_to_cost_center.return_value = True
    return manager


class TestGetPropertyValue:
    def test_found(self):
        assert get_property_value(repo("api", team="platform"), "team") == "platform"

    def test_missing(self):
        assert get_property_value(repo("api"), "team") is None
        assert get_property_value({}, "team") is None


class TestRepositoryCostCenterManager:
    def test_build_assignments(self, config, github_manager):
        manager = RepositoryCostCenterManager(config, github_manager)
        assert manager.build_assignments("acme") == {
            "Platform": ["acme/api", "acme/terraform"],
            "Production": ["acme/api", "acme/pipelines"],
        }

    def test_plan_makes_no_changes(self, config, github_manager):
        summary = RepositoryCostCenterManager(config, github_manager).run("acme", mode="plan")

        assert summary["total_repositories"] == 4
        assert summary["cost_centers"]["Platform"] == {"repositories": 2, "success": None}
        github_manager.ensure_cost_center.assert_not_called()
        github_manager.add_repositories_to_cost_center.assert_not_called()

    def test_apply(self, config, github_manager):
        summary = RepositoryCostCenterManager(config, github_manager).run("acme", mode="apply")

        github_manager.add_repositories_to_cost_center.assert_any_call("cc-platform", ["acme/api", "acme/terraform"])
        github_manager.add_repositories_to_cost_center.assert_any_call("id-Production", ["acme/api", "acme/pipelines"])
        assert all(cc["success"] for cc in summary["cost_centers"].values())

    def test_unresolved_cost_center_is_reported(self, config, github_manager):
        github_manager.ensure_cost_center.side_effect = TerminalAPIError(422, "Validation Failed")
        summary = RepositoryCostCenterManager(config, github_manager).run("acme")

        assert summary["cost_centers"]["Platform"]["success"] is False
        github_manager.add_repositories_to_cost_center.assert_not_called()

    def test_budgets_disabled_when_api_unavailable(self, config, github_manager):
        github_manager.create_cost_center_budget.side_effect = BudgetsAPIUnavailableError("not enabled")
        manager = RepositoryCostCenterManager(config, github_manager, create_budgets=True)

        manager.run("acme")

        assert manager.create_budgets is False
        assert github_manager.create_cost_center_budget.call_count == 1
        assert github_manager.add_repositories_to_cost_center.call_count == 2

    def test_no_mappings(self, github_manager):
        config = SimpleNamespace(github_cost_centers_repository_config=None)
        manager = RepositoryCostCenterManager(config, github_manager)
        assert manager.build_assignments("acme") == {}


class TestBudgetFailures:
    def test_budget_listing_error_does_not_stop_assignment(self, manager, router, sleeps):
        router.add("GET", "/orgs/acme/properties/values", FakeResponse(200, json_body=[
            repo("api", team="platform"),
        ]))
        router.add("GET", enterprise_path("/settings/billing/cost-centers"), FakeResponse(200, json_body={"costCenters": []}))
        router.add("POST", enterprise_path("/settings/billing/cost-centers"), FakeResponse(201, json_body={"id": "cc-new"}))
        router.add("GET", enterprise_path("/settings/billing/budgets"), FakeResponse(500, text="boom"))
        router.add("POST", enterprise_path("/settings/billing/cost-centers/cc-new/resource"), FakeResponse(200, json_body={}))
        config = SimpleNamespace(github_cost_centers_repository_config=RepositoryConfig([
            {"cost_center": "Platform", "property_name": "team", "property_values": ["platform"]},
        ]))

        summary = RepositoryCostCenterManager(config, manager, create_budgets=True).run("acme", mode="apply")

        assert summary["cost_centers"]["Platform"]["success"] is True
        assigned = [c for c in manager.transport.session.calls if c.url.endswith("/cc-new/resource")]
        assert body_of(assigned[0]) == {"repositories": ["acme/api"]}
        assert sleeps == [1.0, 2.0]
