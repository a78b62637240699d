"""
GitHub API Manager for Copilot license and cost center operations.
"""

import logging
import re
import threading
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .models import AssigningTeam
from .transport import GitHubAPIError, GitHubTransport, TerminalAPIError, TransportError

# The cost center resource endpoint accepts at most this many entries per call
COST_CENTER_BATCH_SIZE = 50

EXISTING_COST_CENTER_RE = re.compile(
    r'existing cost center UUID:\s*([a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12})',
    re.IGNORECASE,
)

# Product-level identifiers (ProductPricing budgets). Non-exhaustive, see
# https://docs.github.com/enterprise-cloud@latest/billing/reference/product-and-sku-names
PRODUCT_LEVEL_BUDGETS = {
    'actions': 'actions',
    'packages': 'packages',
    'codespaces': 'codespaces',
    'copilot': 'copilot',
    'ghas': 'ghas',
    'ghec': 'ghec',
}

# SKU-level identifiers (SkuPricing budgets)
SKU_LEVEL_BUDGETS = {
    # Copilot
    'copilot_premium_request': 'copilot_premium_request',
    'copilot_agent_premium_request': 'copilot_agent_premium_request',
    'copilot_enterprise': 'copilot_enterprise',
    'copilot_for_business': 'copilot_for_business',
    'copilot_standalone': 'copilot_standalone',
    # Actions
    'actions_linux': 'actions_linux',
    'actions_macos': 'actions_macos',
    'actions_windows': 'actions_windows',
    'actions_storage': 'actions_storage',
    # Codespaces
    'codespaces_storage': 'codespaces_storage',
    'codespaces_prebuild_storage': 'codespaces_prebuild_storage',
    # Packages
    'packages_storage': 'packages_storage',
    'packages_bandwidth': 'packages_bandwidth',
    # GHAS
    'ghas_licenses': 'ghas_licenses',
    'ghas_code_security_licenses': 'ghas_code_security_licenses',
    'ghas_secret_protection_licenses': 'ghas_secret_protection_licenses',
    # Other
    'ghec_licenses': 'ghec_licenses',
    'git_lfs_storage': 'git_lfs_storage',
    'git_lfs_bandwidth': 'git_lfs_bandwidth',
    'models_inference': 'models_inference',
    'spark_premium_request': 'spark_premium_request',
}

logger = logging.getLogger(__name__)


class BudgetsAPIUnavailableError(GitHubAPIError):
    """Raised when the GitHub Budgets API is not available for this enterprise."""
    pass


def extract_existing_cost_center_id(message: str) -> Optional[str]:
    """Pull the existing cost center UUID out of a 409 conflict message, if present."""
    match = EXISTING_COST_CENTER_RE.search(message or "")
    return match.group(1) if match else None


def get_budget_type_and_sku(product: str) -> Tuple[str, str]:
    """
    Map a product name or SKU to its (budget_type, product_sku) pair.

    SKU-level identifiers produce SkuPricing budgets, product-level identifiers
    produce ProductPricing budgets. Anything unknown is treated as a custom SKU.
    """
    product_lower = product.lower()

    if product_lower in SKU_LEVEL_BUDGETS:
        return ("SkuPricing", SKU_LEVEL_BUDGETS[product_lower])

    if product_lower in PRODUCT_LEVEL_BUDGETS:
        return ("ProductPricing", PRODUCT_LEVEL_BUDGETS[product_lower])

    logger.warning(
        f"Unknown product/SKU '{product}'. Defaulting to SkuPricing. "
        f"See https://docs.github.com/en/enterprise-cloud@latest/billing/reference/product-and-sku-names"
    )
    return ("SkuPricing", product_lower)


def deduplicate_users(users: List[Dict], log: Optional[logging.Logger] = None) -> List[Dict]:
    """Drop repeated logins (first occurrence wins) and entries without a login."""
    log = log or logger
    seen_logins = set()
    unique_users = []
    duplicate_counts: Dict[str, int] = {}

    for user in users:
        login = user.get("login")
        if not login:
            continue
        if login in seen_logins:
            duplicate_counts[login] = duplicate_counts.get(login, 0) + 1
            continue
        seen_logins.add(login)
        unique_users.append(user)

    if duplicate_counts:
        total_dups = sum(duplicate_counts.values())
        sample = ", ".join(f"{k} (+{v})" for k, v in list(duplicate_counts.items())[:10])
        if len(duplicate_counts) > 10:
            sample += ", ..."
        log.warning(
            f"Detected and skipped {total_dups} duplicate seat entries across {len(duplicate_counts)} users: {sample}"
        )
        log.info(f"Unique Copilot users after de-duplication: {len(unique_users)}")

    return unique_users


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def filter_users_by_timestamp(users: List[Dict], after: datetime) -> List[Dict]:
    """Return users whose ``created_at`` is strictly after ``after``.

    Users with a missing or unparseable ``created_at`` are left out.
    """
    if after.tzinfo is None:
        after = after.replace(tzinfo=timezone.utc)

    filtered = []
    for user in users:
        created_at = _parse_timestamp(user.get("created_at"))
        if created_at is not None and created_at > after:
            filtered.append(user)
    return filtered


class GitHubCopilotManager:
    """Manages GitHub API operations for Copilot licenses and cost centers."""

    def __init__(self, config, transport: Optional[GitHubTransport] = None):
        """Initialize the GitHub API manager."""
        self.config = config
        self.logger = logging.getLogger(__name__)

        # Supports GHE Data Resident and GHES base URLs
        self.base_url = (getattr(config, 'github_api_base_url', None) or 'https://api.github.com').rstrip('/')

        self.enterprise_name = getattr(config, 'github_enterprise', None)
        if not self.enterprise_name:
            raise ValueError("Enterprise name is required")

        self.transport = transport or GitHubTransport(
            self.base_url, token=getattr(config, 'github_token', None)
        )
        self.logger.info(f"Initialized GitHub API client with base URL: {self.base_url}")

    def enterprise_path(self, path: str) -> str:
        return f"/enterprises/{self.enterprise_name}{path}"

    def close(self) -> None:
        """Release the pooled HTTP connections."""
        self.transport.close()

    # ===========================
    # Users
    # ===========================

    def get_copilot_users(self, cancel_event: Optional[threading.Event] = None) -> List[Dict]:
        """Get all Copilot license holders in the enterprise, de-duplicated by login."""
        self.logger.info(f"Fetching Copilot users for enterprise: {self.enterprise_name}")
        seats = self.transport.list_paged(
            self.enterprise_path("/copilot/billing/seats"), items_key="seats", cancel_event=cancel_event
        )

        all_users = []
        for seat in seats:
            user_info = seat.get("assignee") or {}
            all_users.append({
                "login": user_info.get("login"),
                "id": user_info.get("id"),
                "name": user_info.get("name"),
                "email": user_info.get("email"),
                "type": user_info.get("type"),
                "created_at": seat.get("created_at"),
                "updated_at": seat.get("updated_at"),
                "pending_cancellation_date": seat.get("pending_cancellation_date"),
                "last_activity_at": seat.get("last_activity_at"),
                "last_activity_editor": seat.get("last_activity_editor"),
                "plan": seat.get("plan") or seat.get("plan_type"),
                "assigning_team": AssigningTeam.from_json(seat.get("assigning_team")),
            })

        self.logger.info(f"Total Copilot users found: {len(all_users)}")
        return deduplicate_users(all_users, self.logger)

    def get_user_details(self, username: str) -> Dict:
        """Get detailed information for a specific user."""
        return self.transport.call("GET", f"/users/{username}")

    def get_rate_limit_status(self) -> Dict:
        """Get current rate limit status."""
        return self.transport.call("GET", "/rate_limit")

    # ===========================
    # Teams
    # ===========================

    def list_org_teams(self, org: str, cancel_event: Optional[threading.Event] = None) -> List[Dict]:
        """List all teams in an organization."""
        self.logger.info(f"Fetching teams for organization: {org}")
        teams = self.transport.list_paged(f"/orgs/{org}/teams", cancel_event=cancel_event)
        self.logger.info(f"Total teams found in {org}: {len(teams)}")
        return teams

    def get_team_members(self, org: str, team_slug: str,
                         cancel_event: Optional[threading.Event] = None) -> List[Dict]:
        """Get all members of an organization team."""
        self.logger.debug(f"Fetching members for team: {org}/{team_slug}")
        members = self.transport.list_paged(f"/orgs/{org}/teams/{team_slug}/members", cancel_event=cancel_event)
        self.logger.info(f"Total members found in {org}/{team_slug}: {len(members)}")
        return members

    def list_enterprise_teams(self, cancel_event: Optional[threading.Event] = None) -> List[Dict]:
        """List all teams in the enterprise."""
        self.logger.info(f"Fetching enterprise teams for: {self.enterprise_name}")
        teams = self.transport.list_paged(self.enterprise_path("/teams"), cancel_event=cancel_event)
        self.logger.info(f"Total enterprise teams found: {len(teams)}")
        return teams

    def get_enterprise_team_members(self, team_slug: str,
                                    cancel_event: Optional[threading.Event] = None) -> List[Dict]:
        """Get all members of an enterprise team (user objects, not wrapped)."""
        self.logger.debug(f"Fetching members for enterprise team: {team_slug}")
        return self.transport.list_paged(
            self.enterprise_path(f"/teams/{team_slug}/memberships"), cancel_event=cancel_event
        )

    # ===========================
    # Cost centers
    # ===========================

    def get_all_active_cost_centers(self) -> Dict[str, str]:
        """
        Get all active cost centers from the enterprise.

        Returns:
            Dict mapping cost center name -> cost center ID
        """
        response_data = self.transport.call("GET", self.enterprise_path("/settings/billing/cost-centers")) or {}
        cost_centers = response_data.get('costCenters', [])

        active_centers_map = {}
        for cc in cost_centers:
            if (cc.get('state') or '').lower() == 'active':
                name = cc.get('name', '')
                uuid = cc.get('id', '')
                if name and uuid:
                    active_centers_map[name] = uuid

        self.logger.debug(f"Found {len(active_centers_map)} active cost centers out of {len(cost_centers)} total")
        return active_centers_map

    def create_cost_center(self, name: str) -> str:
        """
        Create a cost center, or adopt the existing one with the same name.

        The API has no lookup by name, so when it answers 409 the existing ID is
        recovered from the conflict message. This is the only place that parses it.

        Args:
            name: The name for the cost center

        Returns:
            The ID of the new or already existing cost center

        Raises:
            TerminalAPIError: Creation failed, including a 409 without a recognizable ID
        """
        try:
            response_data = self.transport.call(
                "POST", self.enterprise_path("/settings/billing/cost-centers"), json_body={"name": name}
            )
        except TerminalAPIError as e:
            if e.status_code != 409:
                raise
            cost_center_id = extract_existing_cost_center_id(e.body)
            if not cost_center_id:
                self.logger.warning(f"Could not extract UUID from 409 response for '{name}': {e.body}")
                raise
            self.logger.info(f"Cost center '{name}' already exists, using existing ID: {cost_center_id}")
            return cost_center_id

        cost_center_id = (response_data or {}).get('id')
        if not cost_center_id:
            raise TransportError(f"Create cost center '{name}' succeeded without returning an id")
        self.logger.info(f"Successfully created cost center '{name}' with ID: {cost_center_id}")
        return cost_center_id

    def ensure_cost_center(self, name: str, active_centers_map: Dict[str, str]) -> str:
        """Resolve a cost center through the preloaded map, creating it on a miss.

        The map is updated so later lookups in the same run hit it.
        """
        if name in active_centers_map:
            cost_center_id = active_centers_map[name]
            self.logger.debug(f"Found existing cost center in preload map: '{name}' → {cost_center_id}")
            return cost_center_id

        cost_center_id = self.create_cost_center(name)
        active_centers_map[name] = cost_center_id
        return cost_center_id

    def ensure_cost_centers_exist(self, no_pru_cost_center_name: str = "00 - No PRU overages",
                                  pru_allowed_cost_center_name: str = "01 - PRU overages allowed") -> Dict[str, str]:
        """
        Ensure the two PRU cost centers exist.

        Returns:
            Dict with 'no_pru_id' and 'pru_allowed_id'
        """
        self.logger.info(f"Ensuring cost center exists: {no_pru_cost_center_name}")
        no_pru_id = self.create_cost_center(no_pru_cost_center_name)

        self.logger.info(f"Ensuring cost center exists: {pru_allowed_cost_center_name}")
        pru_allowed_id = self.create_cost_center(pru_allowed_cost_center_name)

        self.logger.info(f"Cost centers ready - No PRU: {no_pru_id}, PRU Allowed: {pru_allowed_id}")
        return {'no_pru_id': no_pru_id, 'pru_allowed_id': pru_allowed_id}

    def get_cost_center_members(self, cost_center_id: str) -> List[str]:
        """Get the usernames currently assigned to a cost center."""
        response_data = self.transport.call(
            "GET", self.enterprise_path(f"/settings/billing/cost-centers/{cost_center_id}")
        ) or {}

        usernames = [
            resource.get('name')
            for resource in response_data.get('resources', [])
            if resource.get('type') == 'User' and resource.get('name')
        ]
        self.logger.debug(f"Cost center {cost_center_id} has {len(usernames)} members")
        return usernames

    def check_user_cost_center_membership(self, username: str) -> Optional[Dict]:
        """
        Check if a user belongs to any cost center.

        Returns:
            {"cost_center_id": ..., "cost_center_name": ...} or None if the user is
            not in any cost center
        """
        try:
            response_data = self.transport.call(
                "GET",
                self.enterprise_path("/settings/billing/cost-centers/memberships"),
                params={"resource_type": "user", "name": username},
            )
        except TerminalAPIError as e:
            if e.status_code == 404:
                self.logger.debug(f"User {username} does not belong to any cost center")
                return None
            raise

        memberships = (response_data or {}).get('memberships') or []
        if not memberships:
            self.logger.debug(f"User {username} does not belong to any cost center")
            return None

        # A user belongs to at most one cost center
        cost_center = memberships[0].get('cost_center') or {}
        result = {
            'cost_center_id': cost_center.get('id'),
            'cost_center_name': cost_center.get('name'),
        }
        self.logger.debug(f"User {username} belongs to cost center: {result['cost_center_id']}")
        return result

    def add_users_to_cost_center(self, cost_center_id: str, usernames: List[str],
                                 ignore_current_cost_center: bool = False,
                                 current_members: Optional[Set[str]] = None) -> Dict[str, bool]:
        """Add up to 50 users to a cost center.

        Users already in the target count as successful. Unless
        ``ignore_current_cost_center`` is set, users that belong to another cost
        center are skipped and reported as failed.

        Args:
            cost_center_id: Target cost center ID
            usernames: Usernames to add
            ignore_current_cost_center: Add users even if they belong to another cost center
            current_members: Known members of the target; fetched when omitted

        Returns:
            Dict mapping username -> success status
        """
        if len(usernames) > COST_CENTER_BATCH_SIZE:
            self.logger.error(f"Cannot add more than {COST_CENTER_BATCH_SIZE} users at once. Got {len(usernames)} users.")
            return {username: False for username in usernames}

        if current_members is None:
            current_members = set(self.get_cost_center_members(cost_center_id))

        results: Dict[str, bool] = {}
        users_to_add = []
        for username in usernames:
            if username in current_members:
                self.logger.debug(f"User {username} already in target cost center {cost_center_id}")
                results[username] = True
                continue

            if not ignore_current_cost_center:
                membership = self.check_user_cost_center_membership(username)
                if membership and membership.get('cost_center_id') != cost_center_id:
                    current_name = membership.get('cost_center_name') or membership.get('cost_center_id')
                    self.logger.info(
                        f"Skipping {username} - already in cost center '{current_name}' "
                        f"(omit --check-current-cost-center to override)"
                    )
                    results[username] = False
                    continue

            users_to_add.append(username)

        if not users_to_add:
            self.logger.info(f"No users to add to cost center {cost_center_id} ({len(usernames)} already handled)")
            return results

        self.logger.info(f"Adding {len(users_to_add)} users to cost center {cost_center_id}")
        try:
            self.transport.call(
                "POST",
                self.enterprise_path(f"/settings/billing/cost-centers/{cost_center_id}/resource"),
                json_body={"users": users_to_add},
            )
        except GitHubAPIError as e:
            self.logger.error(f"❌ Failed to add users to cost center {cost_center_id}: {e}")
            for username in users_to_add:
                results[username] = False
            return results

        self.logger.info(f"✅ Successfully added {len(users_to_add)} users to cost center {cost_center_id}")
        for username in users_to_add:
            self.logger.debug(f"   ✅ {username} → {cost_center_id}")
            results[username] = True
        return results

    def bulk_update_cost_center_assignments(self, cost_center_assignments: Dict[str, List[str]],
                                            ignore_current_cost_center: bool = False) -> Dict[str, Dict[str, bool]]:
        """
        Assign users to cost centers in batches of 50.

        Args:
            cost_center_assignments: Dict mapping cost_center_id -> list of usernames
            ignore_current_cost_center: If True, add users even if they belong to another cost center

        Returns:
            Dict mapping cost_center_id -> Dict mapping username -> success status
        """
        results: Dict[str, Dict[str, bool]] = {}
        total_users = sum(len(usernames) for usernames in cost_center_assignments.values())

        for cost_center_id, usernames in cost_center_assignments.items():
            if not usernames:
                continue

            # One membership read per cost center instead of one per batch
            current_members = set(self.get_cost_center_members(cost_center_id))
            pending = [u for u in usernames if u not in current_members]
            self.logger.info(
                f"🔍 Bulk membership check: {len(usernames) - len(pending)}/{len(usernames)} "
                f"already in target cost center {cost_center_id}"
            )

            cost_center_results = {u: True for u in usernames if u in current_members}
            batches = [pending[i:i + COST_CENTER_BATCH_SIZE] for i in range(0, len(pending), COST_CENTER_BATCH_SIZE)]

            for i, batch in enumerate(batches, 1):
                self.logger.info(f"Processing batch {i}/{len(batches)} ({len(batch)} users) for cost center {cost_center_id}")
                batch_results = self.add_users_to_cost_center(
                    cost_center_id, batch, ignore_current_cost_center, current_members=current_members
                )
                cost_center_results.update(batch_results)

                failed = sum(1 for ok in batch_results.values() if not ok)
                if failed:
                    self.logger.warning(f"Batch {i} completed: {len(batch_results) - failed} successful, {failed} failed")

            results[cost_center_id] = cost_center_results

        successful_users = sum(1 for cc in results.values() for ok in cc.values() if ok)
        failed_users = sum(1 for cc in results.values() for ok in cc.values() if not ok)

        self.logger.info(f"📊 ASSIGNMENT RESULTS: {successful_users}/{total_users} users successfully assigned")
        if failed_users > 0:
            self.logger.error(f"⚠️  {failed_users} users failed assignment")

        return results

    def remove_users_from_cost_center(self, cost_center_id: str, usernames: List[str]) -> Dict[str, bool]:
        """
        Remove users from a cost center.

        Returns:
            Dict mapping username -> success status
        """
        if not usernames:
            return {}

        path = self.enterprise_path(f"/settings/billing/cost-centers/{cost_center_id}/resource")
        results: Dict[str, bool] = {}

        for start in range(0, len(usernames), COST_CENTER_BATCH_SIZE):
            batch = usernames[start:start + COST_CENTER_BATCH_SIZE]
            try:
                self.transport.call("DELETE", path, json_body={"users": batch})
            except GitHubAPIError as e:
                self.logger.error(f"Failed to remove users from cost center {cost_center_id}: {e}")
                results.update({user: False for user in batch})
                continue

            self.logger.info(f"✅ Successfully removed {len(batch)} users from cost center {cost_center_id}")
            results.update({user: True for user in batch})

        return results

    # ===========================
    # Budgets
    # ===========================

    def list_budgets(self) -> List[Dict]:
        """
        List all budgets of the enterprise.

        Raises:
            BudgetsAPIUnavailableError: If the Budgets API is not enabled (404)
        """
        try:
            response_data = self.transport.call("GET", self.enterprise_path("/settings/billing/budgets"))
        except TerminalAPIError as e:
            if e.status_code == 404:
                raise BudgetsAPIUnavailableError(
                    f"Budgets API is not available for enterprise '{self.enterprise_name}'. "
                    "This feature may not be enabled for your enterprise."
                ) from e
            raise
        return (response_data or {}).get('budgets', [])

    def check_cost_center_has_budget(self, cost_center_id: str, cost_center_name: str) -> bool:
        """
        Check if a cost center already has a budget.

        The Budgets API may store the cost center NAME as budget_entity_name even
        when the UUID was sent, so both are compared.
        """
        for budget in self.list_budgets():
            if (budget.get('budget_scope') == 'cost_center' and
                    budget.get('budget_entity_name') in (cost_center_name, cost_center_id)):
                self.logger.debug(f"Budget already exists for cost center '{cost_center_name}' (ID: {cost_center_id})")
                return True
        return False

    def check_cost_center_has_product_budget(self, cost_center_id: str, cost_center_name: str, product: str) -> bool:
        """Check if a cost center already has a budget for a specific product."""
        _, product_sku = get_budget_type_and_sku(product)
        for budget in self.list_budgets():
            if (budget.get('budget_scope') == 'cost_center' and
                    budget.get('budget_entity_name') in (cost_center_id, cost_center_name) and
                    budget.get('budget_product_sku') == product_sku):
                self.logger.info(f"Found existing {product} budget for cost center: {cost_center_name}")
                return True
        return False

    def create_cost_center_budget(self, cost_center_id: str, cost_center_name: str, budget_amount: int = 100) -> bool:
        """
        Create a Copilot premium request budget for a cost center, unless one exists.

        Returns:
            True if the budget exists or was created, False if creation failed

        Raises:
            BudgetsAPIUnavailableError: If the Budgets API is not available for this enterprise
        """
        if self.check_cost_center_has_budget(cost_center_id, cost_center_name):
            self.logger.info(f"Budget already exists for cost center: {cost_center_name} (ID: {cost_center_id})")
            return True

        return self._create_budget(cost_center_id, cost_center_name, "SkuPricing", "copilot_premium_request", budget_amount)

    def create_product_budget(self, cost_center_id: str, cost_center_name: str, product: str, amount: int) -> bool:
        """
        Create a product-level budget for a cost center, unless one exists.

        Raises:
            BudgetsAPIUnavailableError: If the Budgets API is not available for this enterprise
        """
        if self.check_cost_center_has_product_budget(cost_center_id, cost_center_name, product):
            self.logger.info(f"{product.title()} budget already exists for cost center: {cost_center_name}")
            return True

        budget_type, product_sku = get_budget_type_and_sku(product)
        return self._create_budget(cost_center_id, cost_center_name, budget_type, product_sku, amount)

    def _create_budget(self, cost_center_id: str, cost_center_name: str,
                       budget_type: str, product_sku: str, amount: int) -> bool:
        payload = {
            "budget_type": budget_type,
            "budget_product_sku": product_sku,
            "budget_scope": "cost_center",
            "budget_amount": amount,
            "prevent_further_usage": True,
            "budget_entity_name": cost_center_id,
            "budget_alerting": {
                "will_alert": False,
                "alert_recipients": []
            }
        }

        try:
            self.transport.call("POST", self.enterprise_path("/settings/billing/budgets"), json_body=payload)
        except TerminalAPIError as e:
            if e.status_code == 404:
                raise BudgetsAPIUnavailableError(
                    f"Budgets API is not available for enterprise '{self.enterprise_name}'. "
                    "This feature may not be enabled for your enterprise."
                ) from e
            self.logger.error(f"❌ Failed to create {product_sku} budget for cost center '{cost_center_name}': {e}")
            return False
        except GitHubAPIError as e:
            self.logger.error(f"❌ Failed to create {product_sku} budget for cost center '{cost_center_name}': {e}")
            return False

        self.logger.info(f"✅ Successfully created ${amount} {product_sku} budget for cost center: {cost_center_name}")
        return True

    # ===========================
    # Custom Properties API Methods
    # ===========================

    def get_org_custom_properties(self, org: str) -> List[Dict]:
        """Get all custom property definitions (schema) for an organization."""
        self.logger.info(f"Fetching custom property schema for organization: {org}")
        properties = self.transport.call("GET", f"/orgs/{org}/properties/schema") or []
        self.logger.info(f"Found {len(properties)} custom properties defined for organization: {org}")
        return properties

    def get_all_org_repositories_with_properties(self, org: str, query: Optional[str] = None,
                                                 cancel_event: Optional[threading.Event] = None) -> List[Dict]:
        """Get all repositories of an organization with their custom property values.

        Args:
            org: Organization name
            query: Optional repository search query, e.g.
                "custom_properties:environment:production"

        Returns:
            List of {"repository_id", "repository_name", "repository_full_name", "properties"}
        """
        params = {"repository_query": query} if query else None
        if query:
            self.logger.info(f"Fetching repositories for organization '{org}' with query: {query}")
        else:
            self.logger.info(f"Fetching repositories with custom properties for organization: {org}")

        repositories = self.transport.list_paged(
            f"/orgs/{org}/properties/values", params=params, cancel_event=cancel_event
        )
        self.logger.info(f"Total repositories with custom properties found: {len(repositories)}")
        return repositories

    def get_repository_custom_properties(self, owner: str, repo: str) -> List[Dict]:
        """Get the custom property name/value pairs of one repository."""
        self.logger.debug(f"Fetching custom properties for repository: {owner}/{repo}")
        return self.transport.call("GET", f"/repos/{owner}/{repo}/properties/values") or []

    def add_repositories_to_cost_center(self, cost_center_id: str, repository_names: Iterable[str]) -> bool:
        """Add repositories ('org/repo' full names) to a cost center in batches.

        Returns:
            True if every batch was accepted, False otherwise
        """
        repository_names = list(repository_names)
        if not repository_names:
            self.logger.warning("No repository names provided to add to cost center")
            return False

        path = self.enterprise_path(f"/settings/billing/cost-centers/{cost_center_id}/resource")
        success = True
        for start in range(0, len(repository_names), COST_CENTER_BATCH_SIZE):
            batch = repository_names[start:start + COST_CENTER_BATCH_SIZE]
            try:
                self.transport.call("POST", path, json_body={"repositories": batch})
            except GitHubAPIError as e:
                self.logger.error(f"❌ Failed to add {len(batch)} repositories to cost center {cost_center_id}: {e}")
                success = False
                continue
            self.logger.info(f"✅ Successfully added {len(batch)} repositories to cost center {cost_center_id}")

        return success
