#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import argparse
import glob
import json
import logging
import os
import signal
import sys
import textwrap
import time
import argcomplete
from argparse import RawTextHelpFormatter

from deckhand import __version__

from .utils import engines, self_update
from .utils.common import parse_duration, setup_logging
from .utils.config import config, create_example_config
from .utils.filters import build_filter, parse_filter_args
from .utils.notifiers import notification_manager
from .utils.scheduler import start_scheduler, stop_scheduler
from .utils.update import update

LOG_LEVELS = ["debug", "info", "warning", "error", "critical"]


def get_container_names(**kwargs):
    """
    Get list of all Docker container names for auto-completion.

    Returns:
        list: List of container names, or empty list if Docker client is unavailable
    """
    try:
        client = engines.get_client()
        if client:
            return [container.name for container in client.client.containers.list(all=True)]
    except Exception:
        pass
    return []


def duration(value):
    """argparse type accepting duration strings such as '30s' or '2m'."""
    try:
        parse_duration(value, "s")
    except (ValueError, TypeError):
        raise argparse.ArgumentTypeError(f"invalid duration '{value}' (e.g., '10s', '2m', '1h')")
    return value


def clear_logs(log_dir="/app/logs"):
    """
    Delete all deckhand log files, including rotated ones.

    Parameters:
        log_dir (str): Directory containing the log files

    Returns:
        int: Number of deleted files
    """
    if not os.path.exists(log_dir):
        logging.info("Log directory not found")
        return 0

    deleted_count = 0
    for log_file in glob.glob(os.path.join(log_dir, "deckhand.log*")):
        try:
            os.remove(log_file)
            deleted_count += 1
            logging.info(f"Deleted log file: {os.path.basename(log_file)}")
        except OSError as e:
            logging.error(f"Failed to delete log file {log_file}: {e}")

    if deleted_count > 0:
        logging.info(f"Successfully deleted {deleted_count} file(s)")
    else:
        logging.info("No log files found to delete")
    return deleted_count


def parse_args(argv=None):
    """
    Parse command-line arguments for deckhand.

    Every update option defaults to the value in the configuration file; flags
    given on the command line take precedence.

    Parameters:
        argv (list, optional): Arguments to parse instead of sys.argv

    Returns:
        argparse.Namespace: Parsed command-line arguments
    """
    parser = argparse.ArgumentParser(
        prog="deckhand",
        description="Keeps running containers up to date by recreating them when their image has been updated.",
        formatter_class=RawTextHelpFormatter,
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=__version__,
        help="Display the current version"
    )
    names_arg = parser.add_argument(
        "names", nargs="*", metavar="NAME",
        help="Only update containers with these names (wildcards allowed)",
    )
    names_arg.completer = get_container_names
    parser.add_argument(
        "--filter", nargs="*", metavar="FILTER",
        help=textwrap.dedent("""
                            Filter the list of containers to process.

                            Supported filter expressions:
                            name=<container_name>       Match container names. If wildcards (*, ?) are used,
                                                        pattern matching is applied. If no wildcards are given,
                                                        exact name matching is enforced. You can specify
                                                        multiple name filters.

                            label=io.deckhand.enable    Only process containers labelled io.deckhand.enable=true.

                            Examples:
                            --filter name=nginx name=redis
                            --filter name=ngin* name=*cloud* label=io.deckhand.enable

                        """)
    )
    parser.add_argument(
        "--label-enable",
        action="store_true",
        default=None,
        help="Only update containers labelled io.deckhand.enable=true",
    )
    parser.add_argument(
        "--cleanup",
        action="store_true",
        default=None,
        help="Remove old images after their container has been replaced",
    )
    parser.add_argument(
        "--no-restart",
        action="store_true",
        default=None,
        help="Do not restart containers, except deckhand itself",
    )
    parser.add_argument(
        "--no-pull",
        action="store_true",
        default=None,
        help="Do not pull images, compare against local images only",
    )
    parser.add_argument(
        "--start-timeout",
        type=duration,
        metavar="DURATION",
        help="Time a new container gets to reach the running state (e.g., '60s')",
    )
    parser.add_argument(
        "--stop-timeout",
        type=duration,
        metavar="DURATION",
        help="Time an old container gets to stop before it is killed (e.g., '10s')",
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        default=(
            str(config.logging.level).lower()
            if str(config.logging.level).lower() in LOG_LEVELS
            else "info"
        ),
        help="Set the logging level",
    )
    parser.add_argument(
        "--clear-logs", "-c",
        action="store_true",
        help="Clear all log files before starting",
    )
    parser.add_argument(
        "--daemon", "-d",
        action="store_true",
        help="Run deckhand as a daemon with scheduled execution based on cronSchedule in config",
    )

    argcomplete.autocomplete(parser)

    return parser.parse_args(argv)


def get_settings(args):
    """
    Merge command-line flags over the current configuration.

    Parameters:
        args (argparse.Namespace): Parsed command-line arguments

    Returns:
        dict: Effective settings for one update pass
    """
    filter_names, filter_label_enable = parse_filter_args(args.filter)
    names = list(args.names or []) + filter_names
    if not names:
        names = json.loads(config.filter.names or "[]")

    def flag(value, config_value):
        return bool(config_value) if value is None else value

    return {
        "names": names,
        "label_enable": filter_label_enable or flag(args.label_enable, config.filter.labelEnable),
        "cleanup": flag(args.cleanup, config.update.cleanup),
        "no_restart": flag(args.no_restart, config.update.noRestart),
        "no_pull": flag(args.no_pull, config.update.noPull),
        "start_timeout": parse_duration(args.start_timeout or config.update.startTimeout, "s"),
        "stop_timeout": parse_duration(args.stop_timeout or config.update.stopTimeout, "s"),
    }


def run_update(client, args):
    """
    Execute one update pass and send the update report.

    Errors that abort the pass (cyclic links, a failing container listing) are
    logged and reported; they never escape this function.

    Parameters:
        client (ContainerClient): Container engine client
        args (argparse.Namespace): Parsed command-line arguments

    Returns:
        int: 0 if the pass completed, 1 if it was aborted
    """
    settings = get_settings(args)
    logging.debug(f"-> settings:\n{json.dumps(settings, indent=4)}", extra={"indent": 0})

    client.no_pull = settings["no_pull"]
    container_filter = build_filter(settings["names"], settings["label_enable"])

    notification_manager.reset_stats()
    notification_manager.set_start_time()

    exit_code = 0
    try:
        update(
            client,
            container_filter,
            cleanup=settings["cleanup"],
            no_restart=settings["no_restart"],
            start_timeout=settings["start_timeout"],
            stop_timeout=settings["stop_timeout"],
            notification_manager=notification_manager,
        )
    except Exception as e:
        error_msg = f"Update pass aborted: {e}"
        logging.error(error_msg, extra={"indent": 0})
        notification_manager.add_error(error_msg)
        exit_code = 1

    notification_manager.send_update_report()
    return exit_code


def run_daemon(client, args):
    """
    Run update passes on the configured cron schedule until a shutdown signal arrives.
    """
    def signal_handler(signum, frame):
        logging.info("Received shutdown signal, stopping scheduler...")
        stop_scheduler()
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    def scheduled_run():
        if config.reload():
            notification_manager.reload()
        run_update(client, args)

    start_scheduler(scheduled_run)

    # Keep the main thread alive
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logging.info("Received keyboard interrupt, shutting down...")
        stop_scheduler()
    return 0


def main(argv=None):
    """
    Main entry point for deckhand.

    1. Parses command-line arguments and sets up logging
    2. Connects to the container engine
    3. Stops previous deckhand instances left over from a self-update
    4. Runs a single update pass, or schedules passes in daemon mode

    Returns:
        int: Process exit code
    """
    args = parse_args(argv)

    # Keep the example file in sync when the config directory is mounted
    if os.path.exists("/app/conf"):
        create_example_config()

    if args.clear_logs:
        clear_logs()

    setup_logging(log_level=args.log_level)

    settings = get_settings(args)
    client = engines.get_client(no_pull=settings["no_pull"])
    if not client:
        logging.error("Failed to get Docker client")
        return 1

    try:
        self_update.stop_previous_instances(client, settings["cleanup"], settings["stop_timeout"])
    except Exception as e:
        logging.error(f"Failed to check for previous deckhand instances: {e}", extra={"indent": 0})

    if args.daemon:
        return run_daemon(client, args)

    return run_update(client, args)


if __name__ == "__main__":
    sys.exit(main())
