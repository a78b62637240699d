"""
PRU-based cost center assignment: the default two-tier mode.
"""

import logging
from typing import Dict, List


class CostCenterManager:
    """Assigns every Copilot user to one of two cost centers.

    Users on the PRU exception list go to the "PRU overages allowed" cost center,
    everyone else to the "no PRU overages" cost center.
    """

    def __init__(self, config, auto_create_enabled: bool = False):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.auto_create_enabled = auto_create_enabled or getattr(config, 'auto_create_cost_centers', False)

        self.no_pru_cost_center_id = config.no_prus_cost_center_id
        self.pru_allowed_cost_center_id = config.prus_allowed_cost_center_id
        self.exception_users = {login.lower() for login in (config.prus_exception_users or [])}

        self.logger.info(
            f"Initialized PRU manager with {len(self.exception_users)} exception users "
            f"(no PRU: {self.no_pru_cost_center_id}, PRU allowed: {self.pru_allowed_cost_center_id})"
        )

    def set_cost_center_ids(self, no_pru_id: str, pru_allowed_id: str) -> None:
        """Replace the configured IDs, e.g. after auto-creation resolved the real UUIDs."""
        self.no_pru_cost_center_id = no_pru_id
        self.pru_allowed_cost_center_id = pru_allowed_id
        self.logger.info(f"Updated cost center IDs - No PRU: {no_pru_id}, PRU Allowed: {pru_allowed_id}")

    def is_exception(self, login: str) -> bool:
        return (login or "").lower() in self.exception_users

    def assign_cost_center(self, user: Dict) -> str:
        """Return the cost center ID for one user."""
        login = user.get('login')
        if self.is_exception(login):
            self.logger.debug(f"User {login} is a PRU exception → {self.pru_allowed_cost_center_id}")
            return self.pru_allowed_cost_center_id
        self.logger.debug(f"User {login} → default cost center {self.no_pru_cost_center_id}")
        return self.no_pru_cost_center_id

    def assignment_groups(self, users: List[Dict]) -> Dict[str, List[str]]:
        """Build the desired {cost_center_id: [usernames]} mapping."""
        groups: Dict[str, List[str]] = {
            self.pru_allowed_cost_center_id: [],
            self.no_pru_cost_center_id: [],
        }
        for user in users:
            groups[self.assign_cost_center(user)].append(user.get('login'))
        return groups

    def generate_summary(self, users: List[Dict]) -> Dict[str, int]:
        """Count users per cost center."""
        summary: Dict[str, int] = {}
        for user in users:
            cost_center = self.assign_cost_center(user)
            summary[cost_center] = summary.get(cost_center, 0) + 1
        return summary

    def validate_configuration(self) -> List[str]:
        """Return configuration problems; an empty list means the setup is usable."""
        issues = []
        if not self.no_pru_cost_center_id:
            issues.append("no_prus_cost_center_id is not defined")
        if not self.pru_allowed_cost_center_id:
            issues.append("prus_allowed_cost_center_id is not defined")
        if self.no_pru_cost_center_id and self.no_pru_cost_center_id == self.pru_allowed_cost_center_id:
            issues.append("no_prus_cost_center_id and prus_allowed_cost_center_id cannot be the same")
        return issues
