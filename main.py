"""
TRAINREG Main Entry Point
=========================
Operator command line: bootstrap, then one maintenance command.

    python main.py status
    python main.py sync
    python main.py archive 2025
    python main.py restore 2025 12
    python main.py gaps
"""
import argparse
import logging
import sys

from core.logging_config import LoggingConfig
from exceptions import TrainregError
from version import APP_NAME, VERSION

logger = logging.getLogger(__name__)


def _cmd_status(service, _args):
    counters = service.get_counters()
    active = service.get_active_group()
    print(f"{APP_NAME} {VERSION}")
    print(f"Counters : {counters.prefix}/{counters.seq} (version {counters.version})")
    if active is not None:
        print(f"Active   : #{active.group_number} {active.period_start} .. {active.period_end}")
    else:
        print("Active   : none")
    counts = service.groups.participant_counts()
    for group in service.list_groups():
        number = f"#{group.group_number}" if group.group_number is not None else "-"
        lock = " locked" if group.is_locked else ""
        print(f"  {group.period_start}  {number:>6}  {group.status.value:<9}{lock}  "
              f"{counts.get(group.period_start, 0)} participant(s)")
    return 0


def _cmd_sync(service, _args):
    report = service.sync_periods()
    if report.failed:
        print("Sync failed, see the log for details")
        return 1
    print(f"Created: {', '.join(map(str, report.created)) or '-'}")
    print(f"Pruned : {', '.join(map(str, report.pruned)) or '-'}")
    return 0


def _cmd_archive(service, args):
    summary = service.archive_year(args.year)
    print(f"{summary.archive_id}: {summary.groups} group(s), {summary.participants} participant(s) archived")
    return 0


def _cmd_restore(service, args):
    group = service.restore_group(args.year, args.number)
    print(f"Group #{group.group_number} ({group.period_start}) restored from {args.year}")
    return 0


def _cmd_gaps(service, _args):
    gaps = service.find_number_gaps()
    print("\n".join(gaps) if gaps else "No gaps")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trainreg", description=f"{APP_NAME} maintenance commands")
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {VERSION}")
    parser.add_argument("--log-level", default=None, help="overrides LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="counters and groups overview").set_defaults(func=_cmd_status)
    sub.add_parser("sync", help="reconcile groups with participant periods").set_defaults(func=_cmd_sync)
    sub.add_parser("gaps", help="list numbering gaps").set_defaults(func=_cmd_gaps)

    archive = sub.add_parser("archive", help="archive a finished year")
    archive.add_argument("year", type=int)
    archive.set_defaults(func=_cmd_archive)

    restore = sub.add_parser("restore", help="restore one archived group")
    restore.add_argument("year", type=int)
    restore.add_argument("number", type=int, help="group number")
    restore.set_defaults(func=_cmd_restore)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # 1) Logging
    LoggingConfig.setup_logging(log_level=args.log_level)
    try:
        LoggingConfig.cleanup_old_logs(days_to_keep=30)
    except OSError as e:
        logger.debug(f"Log cleanup skipped: {e}")

    # 2) Bootstrap: tables + startup integrity pass
    from database.bootstrap import run_bootstrap
    from services.course_service import CourseService
    try:
        run_bootstrap()
    except Exception as exc:
        print(f"Database initialization failed: {exc}", file=sys.stderr)
        return 1

    # 3) Command
    try:
        return args.func(CourseService(), args)
    except TrainregError as e:
        logger.warning(f"{args.command} failed: {e}")
        print(f"Error [{e.code or type(e).__name__}]: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
