"""
CLI main entry point.
"""

import argparse
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from ..config import Config, load_config
from ..enrichment import Category
from ..errors import InvalidFilterState, RecordsFetchFailed, StorageUnavailable
from ..schemas import Mode
from ..services import ReviveService, custom_range, preset_range
from ..services.billing import DATE_PRESETS
from ..state_store import RecordStore
from ..torn_client import TornClient
from ..view import PAGE_SIZES, SortDirection, SortField

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from e


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="revive-logbook",
        description="Cache, browse and bill your Torn revives",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # login command
    login_parser = subparsers.add_parser("login", help="Validate and save a Torn API key")
    login_parser.add_argument("api_key", type=str, help="Torn API key")
    login_parser.add_argument(
        "--mode",
        choices=[m.value for m in Mode],
        default=Mode.INDIVIDUAL.value,
        help="Track your own revives or your faction's (default: individual)",
    )

    # logout command
    logout_parser = subparsers.add_parser("logout", help="Forget the saved API key")
    logout_parser.add_argument(
        "--clear-data",
        action="store_true",
        help="Also delete cached revives, payments and exclusions",
    )

    # mode command
    mode_parser = subparsers.add_parser("mode", help="Switch the active mode")
    mode_parser.add_argument("mode", choices=[m.value for m in Mode])

    # refresh / backfill commands
    subparsers.add_parser("refresh", help="Fetch the newest revives")
    backfill_parser = subparsers.add_parser("backfill", help="Fetch older revives")
    backfill_parser.add_argument(
        "--pages",
        type=int,
        default=1,
        help="Maximum pages to fetch (default: 1)",
    )

    # list command
    list_parser = subparsers.add_parser("list", help="Show cached revives")
    list_parser.add_argument("--category", choices=[c.value for c in Category])
    list_parser.add_argument("--outcome", choices=["success", "failure"])
    list_parser.add_argument("--player", default="", help="Target name contains")
    list_parser.add_argument("--faction", default="", help="Target faction contains")
    list_parser.add_argument("--from", dest="date_from", type=_parse_date, help="YYYY-MM-DD")
    list_parser.add_argument("--to", dest="date_to", type=_parse_date, help="YYYY-MM-DD")
    list_parser.add_argument(
        "--sort",
        choices=[f.value for f in SortField],
        default=SortField.TIMESTAMP.value,
    )
    list_parser.add_argument(
        "--order",
        choices=[d.value for d in SortDirection],
        default=SortDirection.DESC.value,
    )
    list_parser.add_argument("--page", type=int, default=1)
    list_parser.add_argument("--page-size", type=int, choices=PAGE_SIZES)
    list_parser.add_argument(
        "--auto-backfill",
        action="store_true",
        help="Fetch older revives when the last page is shown",
    )

    # stats command
    subparsers.add_parser("stats", help="Show cache and view statistics")

    # pay command
    pay_parser = subparsers.add_parser("pay", help="Toggle the paid flag of a revive")
    pay_parser.add_argument("--timestamp", type=int, required=True)
    pay_parser.add_argument("--target-id", type=int, required=True)

    # exclude / include commands
    for name, help_text in (
        ("exclude", "Hide a player or faction from every view"),
        ("include", "Stop hiding a player or faction"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        group = sub.add_mutually_exclusive_group(required=True)
        group.add_argument("--player", help="Exact target name")
        group.add_argument("--faction", help="Exact target faction name")

    # bill command
    bill_parser = subparsers.add_parser("bill", help="Total what a target owes")
    bill_parser.add_argument("target", help="Exact target name")
    bill_parser.add_argument("--include-failures", action="store_true")
    bill_parser.add_argument("--min-chance", type=float, default=0)
    bill_parser.add_argument(
        "--preset",
        choices=DATE_PRESETS,
        default="30days",
        help="Date window (default: 30days; ignored when --from or --to is given)",
    )
    bill_parser.add_argument("--from", dest="date_from", type=_parse_date, help="YYYY-MM-DD")
    bill_parser.add_argument("--to", dest="date_to", type=_parse_date, help="YYYY-MM-DD")

    # logs command
    logs_parser = subparsers.add_parser(
        "logs", help="Show revives on a target next to money and items they sent"
    )
    logs_parser.add_argument("target_id", type=int, help="Torn player id of the target")

    # receipt-settings command
    receipt_parser = subparsers.add_parser(
        "receipt-settings", help="Show or change per-revive prices"
    )
    receipt_parser.add_argument("--xanax", type=int, help="Xanax per revive (0 disables)")
    receipt_parser.add_argument("--money", type=int, help="Money per revive (0 disables)")

    # clear command
    clear_parser = subparsers.add_parser("clear", help="Delete all cached data")
    clear_parser.add_argument("--yes", action="store_true", help="Confirm deletion")

    return parser


def _timezone(config: Config):
    return ZoneInfo(config.view.timezone) if config.view.timezone else None


def cmd_login(config: Config, store: RecordStore, api_key: str, mode: str) -> int:
    """Validate a key against the mode's endpoint and save it."""
    client = TornClient(
        api_key=api_key,
        base_url=config.torn.base_url,
        timeout=config.torn.timeout_seconds,
    )
    print(f"  → Checking API key against {config.torn.base_url} ({mode})")
    if not client.test_connection(mode):
        print("❌ Torn rejected the API key")
        return 1

    store.save_api_key(api_key)
    store.save_api_mode(mode)
    print("✓ API key saved")
    return 0


def cmd_logout(service: ReviveService, clear_data: bool) -> int:
    if clear_data:
        service.clear_all_data()
        print("✓ API key, cached revives, payments and exclusions removed")
    else:
        service.logout()
        print("✓ API key cleared")
    return 0


def cmd_refresh(service: ReviveService) -> int:
    merged = service.refresh()
    print(f"✓ Loaded {merged} latest {service.mode.value} revives")
    print(f"  Total cached: {len(service.view.all_records())}")
    return 0


def cmd_backfill(service: ReviveService, pages: int) -> int:
    service.load_from_cache()
    fetched = 0
    for _ in range(max(1, pages)):
        merged = service.load_more()
        fetched += merged
        if not service.has_more():
            print("  ℹ️  All available revives have been loaded")
            break
    print(f"✓ Fetched {fetched} older revives")
    print(f"  Total cached: {len(service.view.all_records())}")
    return 0


def cmd_list(service: ReviveService, args: argparse.Namespace) -> int:
    service.load_from_cache()
    view = service.view
    if not args.auto_backfill:
        view.on_backfill = None

    view.set_filters(
        category=args.category,
        outcome=args.outcome,
        target_name=args.player,
        faction_name=args.faction,
        date_from=args.date_from,
        date_to=args.date_to,
    )
    view.set_sort(args.sort, args.order)
    if args.page_size:
        view.set_page_size(args.page_size)
    page = view.go_to_page(args.page)

    payments = service.store.get_all_payments()
    print(
        f"\n{'Time':<17} {'Target':<18} {'Faction':<18} {'Category':<9} "
        f"{'Chance':>7} {'Skill':>6} {'Gain':>6} {'Result':<8} Paid"
    )
    print("-" * 100)
    for r in page.records:
        when = datetime.fromtimestamp(r.timestamp, view.tz).strftime("%Y-%m-%d %H:%M")
        gain = "" if r.skill_gain is None else f"{r.skill_gain:.2f}"
        print(
            f"{when:<17} {r.target_name[:18]:<18} {(r.target_faction_name or 'N/A')[:18]:<18} "
            f"{r.category.value:<9} {r.chance:>6.2f}% {r.skill:>6.2f} {gain:>6} "
            f"{'Success' if r.success else 'Failed':<8} {'yes' if payments.get(r.payment_key) else 'no'}"
        )
    print(
        f"\nPage {page.current_page}/{page.total_pages} "
        f"({page.filtered_count} of {len(view.all_records())} revives)"
    )
    return 0


def cmd_stats(service: ReviveService) -> int:
    stats = service.store.get_stats()
    service.load_from_cache()
    summary = service.view.summary()

    print("\n📊 Revive Logbook Status")
    print("=" * 40)
    print(f"  Active mode:            {service.mode.value}")
    print(f"  Individual revives:     {stats['records_individual']}")
    print(f"  Group revives:          {stats['records_group']}")
    print(f"  Shown after exclusions: {summary.filtered}")
    print(f"  Successful:             {summary.successful}")
    print(f"  Failed:                 {summary.failed}")
    for category, count in sorted(summary.by_category.items()):
        print(f"    {category:<20} {count}")
    print(f"  Paid / unpaid:          {summary.paid} / {summary.unpaid}")
    print(f"  Schema version:         {stats['schema_version']}")
    print()
    return 0


def cmd_pay(store: RecordStore, timestamp: int, target_id: int) -> int:
    paid = store.toggle_payment(timestamp, target_id)
    print(f"✓ Revive {timestamp}_{target_id} marked {'paid' if paid else 'unpaid'}")
    return 0


def cmd_exclusion(service: ReviveService, command: str, player: str | None, faction: str | None) -> int:
    view = service.view
    if command == "exclude" and player:
        view.exclude_target(player)
    elif command == "exclude":
        view.exclude_faction(faction)
    elif player:
        view.include_target(player)
    else:
        view.include_faction(faction)

    exclusions = view.exclusions
    print(f"  Excluded players:  {', '.join(sorted(exclusions.players)) or '-'}")
    print(f"  Excluded factions: {', '.join(sorted(exclusions.factions)) or '-'}")
    return 0


def cmd_bill(service: ReviveService, args: argparse.Namespace) -> int:
    service.load_from_cache()
    if args.date_from or args.date_to:
        since, until = custom_range(args.date_from, args.date_to, tz=service.view.tz)
    else:
        since, until = preset_range(args.preset, tz=service.view.tz)
    summary = service.bill(
        args.target,
        include_failures=args.include_failures,
        min_chance=args.min_chance,
        since=since,
        until=until,
    )

    print(f"\n🧾 Billing for {summary.target_name}")
    print("=" * 40)
    print(f"  Revives:     {summary.total}")
    print(f"  Successful:  {summary.successful}")
    print(f"  Failed:      {summary.failed}")
    print(f"  Billable:    {summary.billable}")
    print(f"  Amount due:  {summary.amount_label}")
    print()
    return 0


def cmd_logs(service: ReviveService, target_id: int) -> int:
    """Print a target's revives and payment log entries, newest first."""
    service.load_from_cache()
    events = service.interaction_timeline(target_id)
    if not events:
        print(f"  ℹ️  No revives or payments found for player {target_id}")
        return 0

    print(f"\n{'Time':<17} {'Type':<7} Details")
    print("-" * 80)
    for event in events:
        when = datetime.fromtimestamp(event.timestamp, service.view.tz).strftime("%Y-%m-%d %H:%M")
        kind = "Revive" if event.kind == "revive" else "Payment"
        print(f"{when:<17} {kind:<7} {event.description}")
    return 0


def cmd_receipt_settings(store: RecordStore, xanax: int | None, money: int | None) -> int:
    settings = store.get_receipt_settings()
    if xanax is not None or money is not None:
        if xanax is not None:
            settings.xanax_per_revive = xanax
        if money is not None:
            settings.money_per_revive = money
        store.save_receipt_settings(settings)
        print("✓ Receipt settings saved")

    print(f"  Xanax per revive: {settings.xanax_per_revive}")
    print(f"  Money per revive: ${settings.money_per_revive:,}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    try:
        config = load_config(parsed.config)
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"❌ {error}")
        return 1

    try:
        with RecordStore(config.state_db_path) as store:
            return _dispatch(parsed, config, store)
    except StorageUnavailable as e:
        print(f"❌ Local cache unavailable: {e}")
        return 1
    except RecordsFetchFailed as e:
        print(f"❌ {e}")
        if e.auth_failed:
            print("   Run `revive-logbook login <api key>` to save a valid key")
        return 1
    except InvalidFilterState as e:
        print(f"❌ Invalid filter: {e}")
        return 1


def _dispatch(parsed: argparse.Namespace, config: Config, store: RecordStore) -> int:
    if parsed.command == "login":
        return cmd_login(config, store, parsed.api_key, parsed.mode)
    if parsed.command == "pay":
        return cmd_pay(store, parsed.timestamp, parsed.target_id)
    if parsed.command == "receipt-settings":
        return cmd_receipt_settings(store, parsed.xanax, parsed.money)
    if parsed.command == "clear":
        if not parsed.yes:
            print("⚠️  This deletes the API key, cached revives, payments and exclusions.")
            print("   Re-run with --yes to confirm.")
            return 1
        store.clear_all()
        print("✓ All data cleared")
        return 0

    service = ReviveService(store, config, tz=_timezone(config))

    if parsed.command == "logout":
        return cmd_logout(service, parsed.clear_data)
    elif parsed.command == "mode":
        service.switch_mode(parsed.mode)
        print(f"✓ Active mode: {service.mode.value}")
        return 0
    elif parsed.command == "refresh":
        return cmd_refresh(service)
    elif parsed.command == "backfill":
        return cmd_backfill(service, parsed.pages)
    elif parsed.command == "list":
        return cmd_list(service, parsed)
    elif parsed.command == "stats":
        return cmd_stats(service)
    elif parsed.command in ("exclude", "include"):
        return cmd_exclusion(service, parsed.command, parsed.player, parsed.faction)
    elif parsed.command == "logs":
        return cmd_logs(service, parsed.target_id)
    elif parsed.command == "bill":
        return cmd_bill(service, parsed)
    else:
        return 1


if __name__ == "__main__":
    sys.exit(main())
