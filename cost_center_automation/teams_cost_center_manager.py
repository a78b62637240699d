"""
Teams-based Cost Center Manager for GitHub Teams integration.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

from .github_api import BudgetsAPIUnavailableError
from .transport import GitHubAPIError


class TeamsCostCenterManager:
    """Manages cost center assignments based on GitHub team membership."""

    def __init__(self, config, github_manager, create_budgets: bool = False):
        """
        Initialize the teams cost center manager.

        Args:
            config: ConfigManager instance with teams configuration
            github_manager: GitHubCopilotManager instance for API calls
            create_budgets: Whether to create budgets for the cost centers
        """
        self.config = config
        self.github_manager = github_manager
        self.create_budgets = create_budgets
        self.logger = logging.getLogger(__name__)

        self.teams_scope = config.teams_scope  # "organization" or "enterprise"
        self.teams_mode = config.teams_mode  # "auto" or "manual"
        self.organizations = config.teams_organizations or []
        self.auto_create = config.teams_auto_create
        self.team_mappings = config.teams_mappings or {}

        self.teams_cache: Dict[str, List[Dict]] = {}  # org/enterprise -> teams
        self.members_cache: Dict[str, List[str]] = {}  # team key -> usernames

        self.logger.info(f"Initialized TeamsCostCenterManager in '{self.teams_mode}' mode, scope '{self.teams_scope}'")

    def _team_key(self, org_or_enterprise: str, team_slug: str) -> str:
        # Enterprise team slugs are unique on their own
        if self.teams_scope == "enterprise":
            return team_slug
        return f"{org_or_enterprise}/{team_slug}"

    def fetch_all_teams(self) -> Dict[str, List[Dict]]:
        """
        Fetch all teams for the configured scope.

        Returns:
            Dict mapping org/enterprise name -> list of team dicts
        """
        all_teams = {}

        if self.teams_scope == "enterprise":
            enterprise_name = self.config.github_enterprise
            teams = self.github_manager.list_enterprise_teams()
            all_teams[enterprise_name] = teams
            self.logger.info(f"Found {len(teams)} enterprise teams in {enterprise_name}")
        else:
            if not self.organizations:
                self.logger.warning("No organizations configured for organization scope")
                return {}
            for org in self.organizations:
                teams = self.github_manager.list_org_teams(org)
                all_teams[org] = teams
                self.logger.info(f"Found {len(teams)} teams in {org}")

        self.teams_cache.update(all_teams)
        self.logger.info(f"Total teams: {sum(len(teams) for teams in all_teams.values())}")
        return all_teams

    def fetch_team_members(self, org_or_enterprise: str, team_slug: str) -> List[str]:
        """Return the logins of a team's members (cached per team)."""
        cache_key = self._team_key(org_or_enterprise, team_slug)
        if cache_key in self.members_cache:
            return self.members_cache[cache_key]

        if self.teams_scope == "enterprise":
            members = self.github_manager.get_enterprise_team_members(team_slug)
        else:
            members = self.github_manager.get_team_members(org_or_enterprise, team_slug)

        usernames = [member.get('login') for member in members if member.get('login')]
        self.members_cache[cache_key] = usernames
        return usernames

    def get_cost_center_for_team(self, org_or_enterprise: str, team: Dict) -> Optional[str]:
        """
        Determine the cost center for a team.

        Returns:
            A cost center name (auto mode), the mapped name or ID (manual mode), or
            None when a manual-mode team has no mapping
        """
        team_key = self._team_key(org_or_enterprise, team.get('slug'))

        if self.teams_mode == "manual":
            cost_center = self.team_mappings.get(team_key)
            if not cost_center:
                self.logger.debug(f"No mapping found for team {team_key} in manual mode, skipping")
            return cost_center

        if self.teams_mode == "auto":
            if self.teams_scope == "enterprise":
                return f"[enterprise team] {team.get('name')}"
            return f"[org team] {org_or_enterprise}/{team.get('name')}"

        self.logger.error(f"Invalid teams mode: {self.teams_mode}. Must be 'auto' or 'manual'")
        return None

    def build_team_assignments(self) -> Dict[str, List[Tuple[str, str, str]]]:
        """
        Build the cost center -> members mapping from team membership.

        A user can only belong to ONE cost center; when a user is in several teams
        the last team processed wins and the overlap is reported.

        Returns:
            Dict mapping cost_center -> list of (username, org, team_slug) tuples
        """
        self.logger.info("Building team-based cost center assignments...")
        all_teams = self.fetch_all_teams()
        if not all_teams:
            self.logger.warning("No teams found in any configured organization")
            return {}

        user_assignments: Dict[str, Tuple[str, str, str]] = {}
        user_team_map: Dict[str, List[str]] = {}

        for org_or_enterprise, teams in all_teams.items():
            for team in teams:
                team_slug = team.get('slug', 'unknown')
                team_key = self._team_key(org_or_enterprise, team_slug)

                cost_center = self.get_cost_center_for_team(org_or_enterprise, team)
                if not cost_center:
                    continue

                members = self.fetch_team_members(org_or_enterprise, team_slug)
                if not members:
                    self.logger.info(f"Team {team_key} has no members, skipping")
                    continue

                for username in members:
                    user_team_map.setdefault(username, []).append(team_key)
                    user_assignments[username] = (cost_center, org_or_enterprise, team_slug)

                self.logger.info(f"Team {team.get('name')} ({team_key}) → Cost Center '{cost_center}': {len(members)} members")

        multi_team_users = {user: keys for user, keys in user_team_map.items() if len(keys) > 1}
        if multi_team_users:
            self.logger.warning(
                f"⚠️  Found {len(multi_team_users)} users who are members of multiple teams. "
                "Each user can only belong to ONE cost center."
            )
            for username, team_keys in list(multi_team_users.items())[:10]:
                self.logger.warning(
                    f"  ⚠️  {username} is in [{', '.join(team_keys)}] → will be assigned to '{user_assignments[username][0]}'"
                )
            if len(multi_team_users) > 10:
                self.logger.warning(f"  ... and {len(multi_team_users) - 10} more multi-team users")

        assignments: Dict[str, List[Tuple[str, str, str]]] = {}
        for username, (cost_center, org, team_slug) in user_assignments.items():
            assignments.setdefault(cost_center, []).append((username, org, team_slug))

        self.logger.info(
            f"Team assignment summary: {len(assignments)} cost centers, {len(user_assignments)} unique users"
        )
        return assignments

    def _preload_active_cost_centers(self) -> Dict[str, str]:
        try:
            active_centers_map = self.github_manager.get_all_active_cost_centers()
        except GitHubAPIError as e:
            self.logger.warning(f"Failed to preload cost centers: {e}. Falling back to individual creation")
            return {}
        self.logger.info(f"Preloaded {len(active_centers_map)} active cost centers")
        return active_centers_map

    def _ensure_budgets(self, cost_center_id: str, cost_center_name: str) -> None:
        """Create the configured product budgets; disables budgets if the API is unavailable."""
        products = getattr(self.config, 'budget_products', None) or {}
        try:
            if not products:
                self.github_manager.create_cost_center_budget(cost_center_id, cost_center_name)
                return
            for product, settings in products.items():
                if not settings.get('enabled', True):
                    continue
                self.github_manager.create_product_budget(
                    cost_center_id, cost_center_name, product, settings.get('amount', 100)
                )
        except BudgetsAPIUnavailableError as e:
            self.logger.warning(f"Budgets API not available - skipping budget creation: {e}")
            self.create_budgets = False
        except GitHubAPIError as e:
            self.logger.warning(f"⚠️  Budget setup failed for cost center '{cost_center_name}': {e}")

    def ensure_cost_centers_exist(self, cost_centers: Set[str]) -> Tuple[Dict[str, str], Set[str]]:
        """
        Resolve cost center names to IDs, creating the missing ones.

        Returns:
            Tuple of:
            - Dict mapping cost center name -> cost center ID
            - Set of cost center IDs that did not exist before this run
        """
        if not self.auto_create:
            self.logger.info("Auto-creation disabled, assuming cost center IDs are valid")
            return {cc: cc for cc in cost_centers}, set()

        self.logger.info(f"Ensuring {len(cost_centers)} cost centers exist...")
        active_centers_map = self._preload_active_cost_centers()
        preexisting = set(active_centers_map)

        cost_center_map: Dict[str, str] = {}
        newly_created_ids: Set[str] = set()

        for cost_center_name in sorted(cost_centers):
            try:
                cost_center_id = self.github_manager.ensure_cost_center(cost_center_name, active_centers_map)
            except GitHubAPIError as e:
                self.logger.error(f"Failed to create/find cost center '{cost_center_name}': {e}")
                continue

            cost_center_map[cost_center_name] = cost_center_id
            if cost_center_name not in preexisting:
                newly_created_ids.add(cost_center_id)

            if self.create_budgets:
                self._ensure_budgets(cost_center_id, cost_center_name)

        preload_hits = len(preexisting & set(cost_centers))
        self.logger.info(
            f"Cost center resolution complete: {len(cost_center_map)} resolved "
            f"({preload_hits} preload hits, {len(cost_centers) - preload_hits} API calls)"
        )
        return cost_center_map, newly_created_ids

    def sync_team_assignments(self, mode: str = "plan", ignore_current_cost_center: bool = False) -> Dict[str, Dict[str, bool]]:
        """
        Sync team-based cost center assignments to GitHub Enterprise.

        Args:
            mode: "plan" (dry-run) or "apply"
            ignore_current_cost_center: Assign users even if they are in another cost center

        Returns:
            Dict mapping cost_center_id -> Dict mapping username -> success status
            (empty in plan mode)
        """
        team_assignments = self.build_team_assignments()
        if not team_assignments:
            self.logger.warning("No team assignments to sync")
            return {}

        if mode == "plan":
            self.logger.info("MODE=plan: Would sync the following assignments:")
            for cost_center, members in sorted(team_assignments.items()):
                self.logger.info(f"  {cost_center}: {len({m[0] for m in members})} users")
            if self.config.teams_remove_users_no_longer_in_teams:
                self.logger.info("MODE=plan: Full sync is ENABLED - users no longer in teams would be removed")
            return {}

        cost_center_id_map, newly_created_ids = self.ensure_cost_centers_exist(set(team_assignments))

        id_based_assignments: Dict[str, List[str]] = {}
        for cost_center_name, member_tuples in team_assignments.items():
            cost_center_id = cost_center_id_map.get(cost_center_name)
            if not cost_center_id:
                self.logger.error(f"Skipping {len(member_tuples)} users of unresolved cost center '{cost_center_name}'")
                continue
            usernames = id_based_assignments.setdefault(cost_center_id, [])
            usernames.extend(username for username, _, _ in member_tuples)

        for cost_center_id in id_based_assignments:
            id_based_assignments[cost_center_id] = sorted(set(id_based_assignments[cost_center_id]))

        self.logger.info("Syncing team-based assignments to GitHub Enterprise...")
        results = self.github_manager.bulk_update_cost_center_assignments(id_based_assignments, ignore_current_cost_center)

        remove = self.config.teams_remove_users_no_longer_in_teams
        removal_results = self._remove_users_no_longer_in_teams(
            id_based_assignments, cost_center_id_map, newly_created_ids, remove=remove
        )
        for cost_center_id, user_results in removal_results.items():
            results.setdefault(cost_center_id, {}).update(user_results)

        return results

    def _remove_users_no_longer_in_teams(self, expected_assignments: Dict[str, List[str]],
                                         cost_center_id_map: Dict[str, str],
                                         newly_created_cost_center_ids: Set[str],
                                         remove: bool = True) -> Dict[str, Dict[str, bool]]:
        """
        Detect and optionally remove cost center members that are not in the team anymore.

        Cost centers created in this run are skipped since nobody can have left them.

        Returns:
            Dict mapping cost_center_id -> Dict mapping username -> removal success
            (empty when ``remove`` is False)
        """
        removal_results: Dict[str, Dict[str, bool]] = {}
        names_by_id = {cc_id: name for name, cc_id in cost_center_id_map.items()}
        total_found = 0

        for cost_center_id, expected_users in expected_assignments.items():
            if cost_center_id in newly_created_cost_center_ids:
                continue

            current_members = set(self.github_manager.get_cost_center_members(cost_center_id))
            departed = sorted(current_members - set(expected_users))
            if not departed:
                continue

            display_name = names_by_id.get(cost_center_id, cost_center_id)
            total_found += len(departed)
            self.logger.warning(
                f"⚠️  Found {len(departed)} users in cost center '{display_name}' who are no longer in the team"
            )
            for username in departed:
                self.logger.warning(f"   ⚠️  {username} is in cost center but not in team")

            if remove:
                self.logger.info(f"Removing {len(departed)} users from '{display_name}'...")
                removal_results[cost_center_id] = self.github_manager.remove_users_from_cost_center(cost_center_id, departed)
            else:
                self.logger.info("Full sync is DISABLED - users will remain in cost center")

        if total_found == 0:
            self.logger.info("✅ No users found who left teams - all cost centers are in sync with teams")
        return removal_results

    def generate_summary(self) -> Dict:
        """Summary statistics of the team-based assignments."""
        team_assignments = self.build_team_assignments()

        all_users = {username for members in team_assignments.values() for username, _, _ in members}
        return {
            "mode": self.teams_mode,
            "scope": self.teams_scope,
            "organizations": self.organizations,
            "total_teams": sum(len(teams) for teams in self.teams_cache.values()),
            "total_cost_centers": len(team_assignments),
            "unique_users": len(all_users),
            "cost_centers": {
                cost_center: {"users": len({username for username, _, _ in members})}
                for cost_center, members in team_assignments.items()
            },
        }
