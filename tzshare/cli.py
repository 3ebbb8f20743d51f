"""
tzshare/cli.py

Command line front end.

    tzshare create --title "Standup" --date 2022-06-19 --time 09:00 \\
        --zone Asia/Kolkata --frequency weekly --show-zone Europe/London
    tzshare show <token-or-url> [--viewer-zone America/New_York]
    tzshare countdown <token-or-url> [--once]

"create" plays the part of the event form (including its business-rule
checks); "show" and "countdown" play the part of the share page.
"""

import argparse
import asyncio
import logging
import sys
from datetime import date, datetime, time, timezone
from typing import List, Optional, TextIO

from . import codec
from .calendar_links import google_calendar_url
from .config import LOG_FORMAT, Settings, configure_logger, load_config
from .countdown import CountdownState, format_remaining
from .errors import ConfigError, DecodeError, InvalidTimezoneError, ValidationError
from .event import EventDescriptor, Frequency
from .recurrence import describe
from .share import LinkShortener, create_share_link, extract_token
from .timezones import get_zone
from .tracker import OccurrenceTracker, ShareView, build_share_view

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 2

DISPLAY_FORMAT = "%B %d, %Y %H:%M:%S"


# =============================================================================
# Argument parsing
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tzshare",
        description="Share events across time zones with a live countdown",
    )
    parser.add_argument("--config", help="JSON or YAML settings file")
    parser.add_argument("--log-level", help="Logging level (overrides config)")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create a share link for an event")
    create.add_argument("--title", required=True)
    create.add_argument("--date", required=True, help="YYYY-MM-DD")
    create.add_argument("--time", required=True, help="HH:MM (24h)")
    create.add_argument("--zone", required=True, help="Creator IANA time zone")
    create.add_argument("--description", default="")
    create.add_argument(
        "--recurring", action="store_true", help="Event repeats (needs --frequency)"
    )
    create.add_argument(
        "--frequency",
        help="daily, alternate_days, weekly, monthly or yearly (implies --recurring)",
    )
    create.add_argument(
        "--show-zone", action="append", default=[], dest="zones",
        help="Time zone to list on the share page (repeatable)",
    )
    create.add_argument("--color", help="Theme color")
    create.add_argument("--shorten", dest="shorten", action="store_true", default=None)
    create.add_argument("--no-shorten", dest="shorten", action="store_false")

    show = sub.add_parser("show", help="Show a shared event")
    show.add_argument("link", help="Share token or share URL")
    show.add_argument("--viewer-zone", default="UTC", help="Your IANA time zone")

    countdown = sub.add_parser("countdown", help="Run a live countdown to a shared event")
    countdown.add_argument("link", help="Share token or share URL")
    countdown.add_argument("--once", action="store_true", help="Exit after the next occurrence")

    return parser


def descriptor_from_args(args: argparse.Namespace, settings: Settings) -> EventDescriptor:
    """
    Build an event from "create" arguments, enforcing the form's rules.

    Raises:
        ValidationError: If a business rule is broken.
        InvalidTimezoneError: If a zone is unknown.
    """
    title = args.title.strip()
    if not title:
        raise ValidationError("Title is required")

    try:
        base_date = date.fromisoformat(args.date)
    except ValueError as e:
        raise ValidationError(f"Invalid date {args.date!r}, expected YYYY-MM-DD") from e
    try:
        base_time = time.fromisoformat(args.time)
    except ValueError as e:
        raise ValidationError(f"Invalid time {args.time!r}, expected HH:MM") from e
    if base_time.tzinfo is not None:
        raise ValidationError(
            f"Invalid time {args.time!r}, give a local time without offset (see --zone)"
        )

    frequency = None
    if args.frequency:
        try:
            frequency = Frequency.from_label(args.frequency)
        except ValueError as e:
            raise ValidationError(str(e)) from e
    is_recurring = args.recurring or frequency is not None
    if is_recurring and frequency is None:
        raise ValidationError("Recurring frequency is required")

    get_zone(args.zone)
    for zone_id in args.zones:
        get_zone(zone_id)

    try:
        return EventDescriptor(
            title=title,
            description=args.description,
            base_date=base_date,
            base_time=base_time.replace(microsecond=0),
            creator_timezone=args.zone,
            is_recurring=is_recurring,
            recurring_frequency=frequency,
            timezones=tuple(args.zones),
            primary_color=args.color or settings.default_color,
        )
    except ValueError as e:
        raise ValidationError(str(e)) from e


# =============================================================================
# Commands
# =============================================================================

async def cmd_create(args: argparse.Namespace, settings: Settings, out: TextIO) -> int:
    descriptor = descriptor_from_args(args, settings)
    shorten = settings.shorten_links if args.shorten is None else args.shorten

    if shorten:
        async with LinkShortener(settings.shortener_url, settings.shortener_timeout) as shortener:
            link = await create_share_link(descriptor, settings.base_url, shortener)
    else:
        link = await create_share_link(descriptor, settings.base_url)

    print(f"Token: {link.token}", file=out)
    print(f"Link:  {link.url}", file=out)
    if link.shortened:
        print(f"Long link: {link.long_url}", file=out)
    return EXIT_OK


def render_view(view: ShareView, now: datetime, out: TextIO) -> None:
    """Print a share page model."""
    descriptor = view.descriptor
    print(descriptor.title, file=out)
    print("=" * len(descriptor.title), file=out)
    if descriptor.description:
        print(descriptor.description, file=out)
    print("", file=out)
    print(describe(descriptor.frequency, descriptor.base_date, descriptor.base_time)
          + f" ({descriptor.creator_timezone})", file=out)
    print(
        f"Event starts on {view.viewer_start.strftime('%d %b %Y')} at "
        f"{view.viewer_start.strftime('%I:%M %p')} in your local timezone "
        f"({view.viewer_timezone})",
        file=out,
    )
    if view.is_past:
        print("This event has already started.", file=out)
    else:
        print(f"Starts in {format_remaining(view.remaining(now))}", file=out)

    if view.listing:
        print("", file=out)
        width = max(len(row.zone_id) for row in view.listing)
        for row in view.listing:
            if row.ok:
                print(f"  {row.zone_id:<{width}}  {row.local.strftime(DISPLAY_FORMAT)}", file=out)
            else:
                print(f"  {row.zone_id:<{width}}  unknown time zone", file=out)

    print("", file=out)
    print(f"Add to calendar: {google_calendar_url(descriptor, view.occurrence)}", file=out)


async def cmd_show(args: argparse.Namespace, settings: Settings, out: TextIO) -> int:
    now = datetime.now(timezone.utc)
    descriptor = codec.decode(extract_token(args.link))
    view = build_share_view(descriptor, args.viewer_zone, now)
    render_view(view, now, out)
    return EXIT_OK


async def cmd_countdown(args: argparse.Namespace, settings: Settings, out: TextIO) -> int:
    descriptor = codec.decode(extract_token(args.link))
    finished = asyncio.Event()
    resolved = []

    def on_tick(remaining):
        print(f"\r{descriptor.title}: {format_remaining(remaining, short=True):<20}",
              end="", file=out, flush=True)

    def on_occurrence(occurrence):
        resolved.append(occurrence)
        # A second occurrence means the first one has elapsed
        if args.once and len(resolved) > 1:
            finished.set()
            return
        print(f"\nNext occurrence: {occurrence.creator_instant.isoformat()}", file=out)

    tracker = OccurrenceTracker(
        descriptor,
        on_tick=on_tick,
        on_occurrence=on_occurrence,
        tick_interval=settings.tick_interval,
    )
    await tracker.start()

    try:
        while not finished.is_set():
            if tracker.state == CountdownState.ELAPSED and descriptor.frequency is None:
                break
            try:
                await asyncio.wait_for(finished.wait(), timeout=settings.tick_interval)
            except asyncio.TimeoutError:
                pass
    finally:
        tracker.cancel()

    print(f"\n{descriptor.title} has started!", file=out)
    return EXIT_OK


COMMANDS = {
    "create": cmd_create,
    "show": cmd_show,
    "countdown": cmd_countdown,
}


def main(argv: Optional[List[str]] = None, out: TextIO = None) -> int:
    """
    Run the CLI.

    Returns:
        Process exit code.
    """
    out = out or sys.stdout
    args = build_parser().parse_args(argv)

    try:
        settings = load_config(args.config)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_ERROR

    log_level = getattr(logging, (args.log_level or settings.log_level).upper(), logging.INFO)
    logging.basicConfig(level=log_level, format=LOG_FORMAT)
    if settings.log_file:
        configure_logger("tzshare", log_file=settings.log_file, log_level=log_level)

    try:
        return asyncio.run(COMMANDS[args.command](args, settings, out))
    except (DecodeError, InvalidTimezoneError, ValidationError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_ERROR
    except KeyboardInterrupt:
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
