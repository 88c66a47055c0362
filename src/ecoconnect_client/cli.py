import argparse
import logging
import traceback
from pathlib import Path
from typing import Callable, Optional

from ecoconnect_client.app import EcoConnectApp
from ecoconnect_client.config import configure_logging, load_config
from ecoconnect_client.normalizers.suggestions import FILTER_IDS

logger = logging.getLogger(__name__)

DEFAULT_MAX_POLLS = 30


def _print_notifications(app: EcoConnectApp) -> None:
    for item in app.notifier.items:
        print(f"[{item.level}] {item.message}")
    app.notifier.clear()


def _raise_error(result) -> None:
    if result.error is not None:
        raise result.error


def cmd_suggestions(app: EcoConnectApp, args: argparse.Namespace) -> None:
    result = app.suggestions.suggestions()
    _raise_error(result)
    suggestions = app.suggestions.filtered(args.filter)
    print(f"Suggestions: {len(suggestions)} (filter: {args.filter})")
    for suggestion in suggestions:
        distance = "n/a" if suggestion.distance is None else f"{suggestion.distance:g} km"
        print(
            f"{suggestion.id} | {suggestion.company} | {suggestion.activity} | "
            f"compatibility={suggestion.compatibility}% | distance={distance} | "
            f"status={suggestion.status}"
        )


def cmd_stats(app: EcoConnectApp, args: argparse.Namespace) -> None:
    result = app.suggestions.stats()
    _raise_error(result)
    stats = result.data
    print(
        f"active={stats.active} new_this_week={stats.new_this_week} "
        f"pending={stats.pending}"
    )


def cmd_ignore(app: EcoConnectApp, args: argparse.Namespace) -> None:
    app.suggestions.ignore(args.id)


def cmd_save(app: EcoConnectApp, args: argparse.Namespace) -> None:
    app.suggestions.save(args.id)


def cmd_assistant(app: EcoConnectApp, args: argparse.Namespace) -> None:
    conversation_id = args.conversation
    if not conversation_id:
        conversation = app.assistant.create_conversation({"title": args.message[:60]})
        if conversation is None:
            raise RuntimeError("Conversation creation returned no conversation")
        conversation_id = conversation.id
        print(f"Conversation: {conversation_id}")

    if args.no_wait:
        app.assistant.send_message(conversation_id, args.message)
        return

    outcome = app.assistant.ask(conversation_id, args.message, max_polls=args.max_polls)
    for message in outcome.messages:
        if message.role == "assistant":
            print(message.text)
    if outcome.state == "rate_limited":
        print(f"Rate limited, retry in {app.assistant.countdown.remaining}s")
    elif outcome.state == "exhausted":
        print("No answer yet, try again later")


def cmd_directory(app: EcoConnectApp, args: argparse.Namespace) -> None:
    result = app.directory.search(
        search=args.search,
        sectors=args.sector,
        waste_types=args.waste_type,
        max_distance=args.max_distance,
        page=args.page,
    )
    _raise_error(result)
    listing = result.data
    pagination = listing.pagination
    print(
        f"Companies: {listing.total:g} "
        f"(page {pagination.page:g}/{pagination.total_pages:g})"
    )
    for company in listing.companies:
        distance = "n/a" if company.distance is None else f"{company.distance:g} km"
        print(f"{company.id} | {company.name} | {company.sector or '-'} | distance={distance}")


def cmd_admin_companies(app: EcoConnectApp, args: argparse.Namespace) -> None:
    result = app.admin.companies(
        page=args.page,
        per_page=args.per_page,
        status=args.status,
        sector=args.sector,
        search=args.search,
    )
    _raise_error(result)
    page = result.data
    pagination = page.pagination
    print(
        f"Companies: page {pagination.page:g}/{pagination.total_pages:g} "
        f"({pagination.total_items:g} total)"
    )
    for row in page.items:
        print(
            f"{row.id} | {row.name} | {row.sector or '-'} | {row.status} | "
            f"{row.email or '-'}"
        )


def cmd_admin_export(app: EcoConnectApp, args: argparse.Namespace) -> None:
    destination = Path(args.output) if args.output else Path.cwd()
    download = app.admin.export_companies(
        destination=destination,
        status=args.status,
        sector=args.sector,
        search=args.search,
    )
    print(f"Exported {len(download.content)} bytes as {download.filename}")


def cmd_logout(app: EcoConnectApp, args: argparse.Namespace) -> None:
    result = app.account.logout()
    print(f"Logged out (server status: {result.get('status')})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ecoconnect", description="EcoConnect Paluds command line client"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    suggestions = subparsers.add_parser("suggestions", help="List partner suggestions")
    suggestions.add_argument("--filter", choices=FILTER_IDS, default="all")
    suggestions.set_defaults(handler=cmd_suggestions)

    stats = subparsers.add_parser("stats", help="Suggestion counters")
    stats.set_defaults(handler=cmd_stats)

    ignore = subparsers.add_parser("ignore", help="Ignore a suggestion")
    ignore.add_argument("id")
    ignore.set_defaults(handler=cmd_ignore)

    save = subparsers.add_parser("save", help="Save a suggestion")
    save.add_argument("id")
    save.set_defaults(handler=cmd_save)

    assistant = subparsers.add_parser("assistant", help="Ask the AI assistant")
    assistant.add_argument("message")
    assistant.add_argument("--conversation", help="existing conversation id")
    assistant.add_argument("--no-wait", action="store_true")
    assistant.add_argument("--max-polls", type=int, default=DEFAULT_MAX_POLLS)
    assistant.set_defaults(handler=cmd_assistant)

    directory = subparsers.add_parser("directory", help="Search the company directory")
    directory.add_argument("--search")
    directory.add_argument("--sector", action="append")
    directory.add_argument("--waste-type", action="append")
    directory.add_argument("--max-distance", type=float, default=15)
    directory.add_argument("--page", type=int, default=1)
    directory.set_defaults(handler=cmd_directory)

    for name, handler, help_text in (
        ("admin-companies", cmd_admin_companies, "List companies (admin)"),
        ("admin-export", cmd_admin_export, "Export companies as CSV (admin)"),
    ):
        admin = subparsers.add_parser(name, help=help_text)
        admin.add_argument("--status")
        admin.add_argument("--sector")
        admin.add_argument("--search")
        if name == "admin-companies":
            admin.add_argument("--page", type=int)
            admin.add_argument("--per-page", type=int)
        else:
            admin.add_argument("--output", help="file or directory")
        admin.set_defaults(handler=handler)

    logout = subparsers.add_parser("logout", help="End the session")
    logout.set_defaults(handler=cmd_logout)
    return parser


def main(
    argv: Optional[list[str]] = None,
    app_factory: Callable[..., EcoConnectApp] = EcoConnectApp.from_config,
) -> int:
    args = build_parser().parse_args(argv)
    config = load_config()
    configure_logging(config.debug)

    app = app_factory(config)
    try:
        args.handler(app, args)
    except Exception as exc:
        _print_notifications(app)
        print(f"ERROR: {exc}")
        if config.debug:
            traceback.print_exc()
        return 1
    _print_notifications(app)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
