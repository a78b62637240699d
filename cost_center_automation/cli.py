"""
Command line entry point.

Assigns Copilot users (or repositories) to cost centers in one of three modes:

1. PRU-based (default): exception users go to the "PRU overages allowed" cost
   center, everyone else to the "no PRU overages" cost center
2. Teams-based: one cost center per organization or enterprise team
3. Repository-based: repositories grouped by custom property values
"""

import argparse
import logging
import signal
import sys
from typing import Dict, List, Optional

from . import __version__
from .config_manager import ConfigManager
from .cost_center_manager import CostCenterManager
from .github_api import GitHubCopilotManager, filter_users_by_timestamp
from .logger_setup import parse_level, setup_logging
from .repository_cost_center_manager import RepositoryCostCenterManager
from .teams_cost_center_manager import TeamsCostCenterManager
from .transport import GitHubAPIError

logger = logging.getLogger(__name__)


def setup_signal_handlers():
    """Exit quietly on broken pipes (e.g. piping to head) and on Ctrl+C."""
    def handle_broken_pipe(signum, frame):
        sys.exit(0)

    def handle_interrupt(signum, frame):
        print("\n\nOperation interrupted by user.", file=sys.stderr)
        sys.exit(1)

    if hasattr(signal, "SIGPIPE"):
        signal.signal(signal.SIGPIPE, handle_broken_pipe)
    signal.signal(signal.SIGINT, handle_interrupt)


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="cost-center-automation",
        description="GitHub Cost Center Management - PRU, teams or repository based assignment",
        epilog="""
Examples:
  %(prog)s --assign-cost-centers --mode plan
  %(prog)s --assign-cost-centers --mode apply --yes
  %(prog)s --teams-mode --assign-cost-centers --mode plan
  %(prog)s --show-config
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("--list-users", action="store_true", help="List all Copilot license holders")
    parser.add_argument("--assign-cost-centers", action="store_true",
                        help="Assign users to cost centers (use with --mode plan/apply)")
    parser.add_argument("--show-config", action="store_true", help="Show current configuration and exit")
    parser.add_argument("--create-cost-centers", action="store_true",
                        help="Create cost centers if they don't exist (PRU mode only)")
    parser.add_argument("--incremental", action="store_true",
                        help="Only process users added since last run (PRU mode only)")
    parser.add_argument("--teams-mode", action="store_true", help="Enable teams-based assignment")
    parser.add_argument("--mode", choices=["plan", "apply"], default="plan",
                        help="Execution mode: plan (no changes) or apply (push assignments to GitHub)")
    parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt in apply mode")
    parser.add_argument("--summary-report", action="store_true", help="Generate cost center summary report")
    parser.add_argument("--users", help="Comma-separated list of specific users to process")
    parser.add_argument("--check-current-cost-center", action="store_true",
                        help="Skip users that already belong to another cost center")
    parser.add_argument("--create-budgets", action="store_true", help="Create budgets for the cost centers")
    parser.add_argument("--config", default="config/config.yaml", help="Configuration file path")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser.parse_args(argv)


def _confirm(prompt: str, expected: str) -> bool:
    return input(prompt).strip().lower() == expected


def _print_config(config: ConfigManager, cost_center_manager: CostCenterManager) -> None:
    print("\n===== Current Configuration =====")
    print(f"Enterprise: {config.github_enterprise}")
    print(f"API base URL: {config.github_api_base_url}")
    if cost_center_manager.auto_create_enabled:
        print(f"No PRUs Cost Center: New cost center \"{config.no_pru_cost_center_name}\" to be created")
        print(f"PRUs Allowed Cost Center: New cost center \"{config.pru_allowed_cost_center_name}\" to be created")
    else:
        summary = config.summary()
        print(f"No PRUs Cost Center: {config.no_prus_cost_center_id}")
        print(f"  → {summary['no_prus_cost_center_url']}")
        print(f"PRUs Allowed Cost Center: {config.prus_allowed_cost_center_id}")
        print(f"  → {summary['prus_allowed_cost_center_url']}")
    print(f"PRUs Exception Users ({len(config.prus_exception_users)}):")
    for user in config.prus_exception_users:
        print(f"  - {user}")
    print("===== End of Configuration =====\n")


def _print_results(results: Dict[str, Dict[str, bool]]) -> int:
    attempted = sum(len(users) for users in results.values())
    successful = sum(1 for users in results.values() for ok in users.values() if ok)
    print("\n" + "=" * 60)
    print(f"  📊 Total users: {successful}/{attempted}")
    if successful < attempted:
        print(f"  ❌ Failed: {attempted - successful}")
    print("=" * 60)
    return 0 if successful == attempted else 1


def _handle_pru_mode(args, config: ConfigManager, github_manager: GitHubCopilotManager) -> int:
    cost_center_manager = CostCenterManager(config, auto_create_enabled=args.create_cost_centers)
    _print_config(config, cost_center_manager)

    if args.show_config and not any([args.list_users, args.assign_cost_centers, args.summary_report]):
        return 0

    users = github_manager.get_copilot_users()
    incremental = args.incremental or config.enable_incremental
    if incremental:
        last_run = config.load_last_run_timestamp()
        if last_run is not None:
            total = len(users)
            users = filter_users_by_timestamp(users, last_run)
            logger.info(f"Incremental processing: {len(users)} of {total} users added since {last_run.isoformat()}")

    if args.users:
        wanted = {u.strip().lower() for u in args.users.split(",") if u.strip()}
        users = [u for u in users if (u.get("login") or "").lower() in wanted]
        logger.info(f"Filtered to {len(users)} requested users")

    if args.list_users:
        print(f"\n{'LOGIN':<30} {'PLAN':<12} {'ASSIGNING TEAM':<30} LAST ACTIVITY")
        for user in users:
            print(f"{user['login']:<30} {str(user.get('plan') or '-'):<12} "
                  f"{str(user['assigning_team']):<30} {user.get('last_activity_at') or '-'}")
        print(f"\nTotal: {len(users)} users")

    if args.summary_report:
        print("\n=== Cost Center Summary ===")
        for cost_center, count in cost_center_manager.generate_summary(users).items():
            print(f"  {cost_center}: {count} users")

    if not args.assign_cost_centers:
        return 0

    if cost_center_manager.auto_create_enabled:
        if args.mode == "apply":
            ids = github_manager.ensure_cost_centers_exist(
                config.no_pru_cost_center_name, config.pru_allowed_cost_center_name
            )
            cost_center_manager.set_cost_center_ids(ids['no_pru_id'], ids['pru_allowed_id'])
        else:
            logger.info("MODE=plan: cost centers would be created if missing")

    issues = cost_center_manager.validate_configuration()
    if issues:
        for issue in issues:
            logger.error(f"Configuration issue: {issue}")
        return 1

    groups = cost_center_manager.assignment_groups(users)
    if args.mode == "plan":
        logger.info("MODE=plan (no changes will be made)")
        for cost_center, usernames in groups.items():
            print(f"  {cost_center}: {len(usernames)} users")
        return 0

    if not args.yes and not _confirm("\nProceed with assignment? Type 'apply' to continue: ", "apply"):
        logger.warning("Aborted by user before applying assignments")
        return 0

    results = github_manager.bulk_update_cost_center_assignments(
        groups, ignore_current_cost_center=not args.check_current_cost_center
    )
    if incremental:
        config.save_last_run_timestamp()
    return _print_results(results)


def _handle_teams_mode(args, config: ConfigManager, github_manager: GitHubCopilotManager) -> int:
    if config.teams_scope not in ("organization", "enterprise"):
        logger.error(f"Invalid teams scope '{config.teams_scope}'. Must be 'organization' or 'enterprise'")
        return 1
    if config.teams_scope == "organization" and not config.teams_organizations:
        logger.error("Teams mode with scope='organization' requires teams.organizations to be configured")
        return 1

    teams_manager = TeamsCostCenterManager(config, github_manager, create_budgets=args.create_budgets or config.budgets_enabled)

    print("\n===== Teams Mode Configuration =====")
    print(f"Scope: {config.teams_scope}")
    print(f"Mode: {config.teams_mode}")
    print(f"Auto-create cost centers: {config.teams_auto_create}")
    print(f"Full sync (remove users who left teams): {config.teams_remove_users_no_longer_in_teams}")
    print("===== End of Configuration =====\n")

    if args.show_config and not any([args.assign_cost_centers, args.summary_report]):
        return 0

    if args.summary_report:
        summary = teams_manager.generate_summary()
        print("\n=== Teams Cost Center Summary ===")
        print(f"Total teams: {summary['total_teams']}")
        print(f"Cost centers: {summary['total_cost_centers']}")
        print(f"Unique users: {summary['unique_users']}")
        for cost_center, stats in summary['cost_centers'].items():
            print(f"  {cost_center}: {stats['users']} users")

    if not args.assign_cost_centers:
        return 0

    ignore_current = not args.check_current_cost_center
    if args.mode == "plan":
        teams_manager.sync_team_assignments(mode="plan", ignore_current_cost_center=ignore_current)
        return 0

    if not args.yes and not _confirm("\nApply team-based assignments? Type 'apply' to continue: ", "apply"):
        logger.warning("Aborted by user before applying assignments")
        return 0

    results = teams_manager.sync_team_assignments(mode="apply", ignore_current_cost_center=ignore_current)
    return _print_results(results)


def _handle_repository_mode(args, config: ConfigManager, github_manager: GitHubCopilotManager) -> int:
    if not config.teams_organizations:
        logger.error("Repository mode requires an organization name in teams.organizations")
        return 1

    org_name = config.teams_organizations[0]
    repo_manager = RepositoryCostCenterManager(config, github_manager, create_budgets=args.create_budgets or config.budgets_enabled)

    if args.show_config:
        print(f"\nOrganization: {org_name}")
        for idx, mapping in enumerate(repo_manager.mappings, 1):
            print(f"  {idx}. {mapping['property_name']} in {mapping['property_values']} → {mapping['cost_center']}")
        if not args.assign_cost_centers:
            return 0

    if not args.assign_cost_centers:
        logger.info("No action specified. Use --assign-cost-centers to assign repositories")
        return 0

    if args.mode == "apply" and not args.yes and not _confirm(
            "\nThis will assign repositories to cost centers. Continue? (yes/no): ", "yes"):
        logger.info("Operation cancelled by user")
        return 0

    summary = repo_manager.run(org_name, mode=args.mode)
    failed = [name for name, cc in summary["cost_centers"].items() if cc["success"] is False]
    return 1 if failed else 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function."""
    setup_signal_handlers()
    args = parse_arguments(argv)

    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = ConfigManager(args.config)
        level = logging.DEBUG if args.verbose else parse_level(config.log_level)
        setup_logging(level=level, log_file=config.log_file)

        if args.create_cost_centers:
            config.enable_auto_creation()
        config.check_config_warnings()

        github_manager = GitHubCopilotManager(config)
        try:
            if config.github_cost_centers_mode == "repository":
                return _handle_repository_mode(args, config, github_manager)
            if args.teams_mode or config.teams_enabled or config.github_cost_centers_mode == "teams":
                return _handle_teams_mode(args, config, github_manager)
            return _handle_pru_mode(args, config, github_manager)
        finally:
            github_manager.close()

    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except GitHubAPIError as e:
        logger.error(f"GitHub API error: {e}")
        return 1
