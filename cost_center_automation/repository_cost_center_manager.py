"""
Repository-based cost center assignment driven by repository custom properties.
"""

import logging
from typing import Dict, List, Optional

from .github_api import BudgetsAPIUnavailableError
from .transport import GitHubAPIError


def get_property_value(repository: Dict, property_name: str) -> Optional[str]:
    """Value of a custom property on a repository (multi-select values are joined lists)."""
    for prop in repository.get('properties') or []:
        if prop.get('property_name') == property_name:
            return prop.get('value')
    return None


class RepositoryCostCenterManager:
    """Assigns repositories to cost centers from explicit custom-property mappings."""

    def __init__(self, config, github_manager, create_budgets: bool = False):
        self.config = config
        self.github_manager = github_manager
        self.create_budgets = create_budgets
        self.logger = logging.getLogger(__name__)

        repository_config = config.github_cost_centers_repository_config
        self.mappings = repository_config.explicit_mappings if repository_config else []
        self.logger.info(f"Initialized RepositoryCostCenterManager with {len(self.mappings)} explicit mappings")

    def _matches(self, repository: Dict, mapping: Dict) -> bool:
        value = get_property_value(repository, mapping['property_name'])
        if value is None:
            return False
        allowed = {str(v) for v in mapping['property_values']}
        if isinstance(value, list):
            return any(str(v) in allowed for v in value)
        return str(value) in allowed

    def build_assignments(self, org: str) -> Dict[str, List[str]]:
        """
        Match the organization's repositories against the explicit mappings.

        Returns:
            Dict mapping cost center name -> sorted repository full names
        """
        repositories = self.github_manager.get_all_org_repositories_with_properties(org)
        assignments: Dict[str, List[str]] = {}

        for mapping in self.mappings:
            cost_center = mapping['cost_center']
            matched = sorted(
                repo.get('repository_full_name') or f"{org}/{repo.get('repository_name')}"
                for repo in repositories if self._matches(repo, mapping)
            )
            self.logger.info(
                f"Mapping {mapping['property_name']} in {mapping['property_values']} → "
                f"'{cost_center}': {len(matched)} repositories"
            )
            if matched:
                existing = assignments.setdefault(cost_center, [])
                existing.extend(name for name in matched if name not in existing)

        return assignments

    def run(self, org: str, mode: str = "apply") -> Dict:
        """
        Assign repositories of ``org`` to their cost centers.

        Args:
            org: Organization whose repositories are evaluated
            mode: "plan" only reports, "apply" creates cost centers and assigns

        Returns:
            Summary dict with per-cost-center repository counts and outcomes
        """
        assignments = self.build_assignments(org)
        summary = {
            "organization": org,
            "mode": mode,
            "total_repositories": sum(len(repos) for repos in assignments.values()),
            "cost_centers": {name: {"repositories": len(repos), "success": None}
                             for name, repos in assignments.items()},
        }

        if mode == "plan":
            for name, repos in assignments.items():
                self.logger.info(f"MODE=plan: Would assign {len(repos)} repositories to '{name}'")
            return summary

        active_centers_map = self.github_manager.get_all_active_cost_centers()
        for name, repos in assignments.items():
            try:
                cost_center_id = self.github_manager.ensure_cost_center(name, active_centers_map)
            except GitHubAPIError as e:
                self.logger.error(f"Failed to create/find cost center '{name}': {e}")
                summary["cost_centers"][name]["success"] = False
                continue

            if self.create_budgets:
                try:
                    self.github_manager.create_cost_center_budget(cost_center_id, name)
                except BudgetsAPIUnavailableError as e:
                    self.logger.warning(f"Budgets API not available - skipping budget creation: {e}")
                    self.create_budgets = False
                except GitHubAPIError as e:
                    self.logger.warning(f"⚠️  Budget setup failed for cost center '{name}': {e}")

            success = self.github_manager.add_repositories_to_cost_center(cost_center_id, repos)
            summary["cost_centers"][name]["success"] = success

        succeeded = sum(1 for cc in summary["cost_centers"].values() if cc["success"])
        self.logger.info(f"Repository assignment complete: {succeeded}/{len(assignments)} cost centers updated")
        return summary
