"""Tests for PRU-based assignment."""

from types import SimpleNamespace

import pytest

from cost_center_automation.cost_center_manager import CostCenterManager


@pytest.fixture
def pru_config():
    return SimpleNamespace(
        no_prus_cost_center_id="cc-no-pru",
        prus_allowed_cost_center_id="cc-pru",
        prus_exception_users=["Alice", "bob"],
        auto_create_cost_centers=False,
    )


class TestCostCenterManager:
    def test_exception_users_case_insensitive(self, pru_config):
        manager = CostCenterManager(pru_config)
        assert manager.assign_cost_center({"login": "alice"}) == "cc-pru"
        assert manager.assign_cost_center({"login": "BOB"}) == "cc-pru"
        assert manager.assign_cost_center({"login": "carol"}) == "cc-no-pru"

    def test_assignment_groups(self, pru_config):
        manager = CostCenterManager(pru_config)
        users = [{"login": "alice"}, {"login": "carol"}, {"login": "dave"}]
        assert manager.assignment_groups(users) == {
            "cc-pru": ["alice"],
            "cc-no-pru": ["carol", "dave"],
        }

    def test_summary(self, pru_config):
        manager = CostCenterManager(pru_config)
        users = [{"login": "alice"}, {"login": "carol"}, {"login": "dave"}]
        assert manager.generate_summary(users) == {"cc-pru": 1, "cc-no-pru": 2}

    def test_set_cost_center_ids(self, pru_config):
        manager = CostCenterManager(pru_config, auto_create_enabled=True)
        assert manager.auto_create_enabled
        manager.set_cost_center_ids("new-no-pru", "new-pru")
        assert manager.assign_cost_center({"login": "carol"}) == "new-no-pru"
        assert manager.assign_cost_center({"login": "alice"}) == "new-pru"

    def test_valid_configuration(self, pru_config):
        assert CostCenterManager(pru_config).validate_configuration() == []

    def test_missing_ids(self, pru_config):
        pru_config.no_prus_cost_center_id = None
        pru_config.prus_allowed_cost_center_id = ""
        issues = CostCenterManager(pru_config).validate_configuration()
        assert len(issues) == 2

    def test_identical_ids(self, pru_config):
        pru_config.prus_allowed_cost_center_id = "cc-no-pru"
        issues = CostCenterManager(pru_config).validate_configuration()
        assert issues == ["no_prus_cost_center_id and prus_allowed_cost_center_id cannot be the same"]
