# ratewatch/cli.py
# The command-line entrypoint. Selects an interface, opens the capture channel and runs the rate-limit loop.
import argparse
import signal
import sys

from loguru import logger

from ratewatch.analysis.rate_limiter import RateLimiter
from ratewatch.capture.interfaces import criteria_for, list_interfaces, select_interface
from ratewatch.capture.manager import CaptureManager
from ratewatch.config_loader import load_config, validate
from ratewatch.errors import ConfigError, RateWatchError
from ratewatch.logger import setup_logging
from ratewatch.storage.influx_client import InfluxStorage

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ratewatch",
                                     description="Flag link-layer sources that exceed a packet-rate threshold")
    parser.add_argument("--config", "-c", default=None, help="YAML config file (default: config/config.yaml if present)")
    parser.add_argument("--interface", "-i", default=None,
                        help="Network interface to capture from (env IFACE; default: first active non-loopback)")
    parser.add_argument("--window", type=float, default=None, help="Rate-limit window in seconds")
    parser.add_argument("--threshold", type=int, default=None, help="Packets allowed per source per window")
    parser.add_argument("--max-retries", type=int, default=None,
                        help="Consecutive transient receive errors tolerated before exiting")
    parser.add_argument("--poll-interval", type=float, default=None,
                        help="Seconds between cancellation checks while waiting for frames")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--list-interfaces", action="store_true", help="Print available interfaces and exit")
    return parser


def _apply_overrides(settings, args):
    if args.interface:
        settings.capture.interface = args.interface
    if args.window is not None:
        settings.rate_limit.window_seconds = args.window
    if args.threshold is not None:
        settings.rate_limit.threshold = args.threshold
    if args.max_retries is not None:
        settings.capture.max_receive_retries = args.max_retries
    if args.poll_interval is not None:
        settings.capture.poll_interval = args.poll_interval
    if args.log_level:
        settings.log_level = args.log_level.upper()
    return validate(settings)


def _install_signal_handlers(manager: CaptureManager) -> dict:
    def _handler(signum, _frame):
        logger.info("Received signal {}, stopping capture", signal.Signals(signum).name)
        manager.stop()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, _handler)
    return previous


def _restore_signal_handlers(previous: dict):
    for sig, handler in previous.items():
        signal.signal(sig, handler)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = _apply_overrides(load_config(args.config), args)
    except ConfigError as e:
        print(f"ratewatch: {e}", file=sys.stderr)
        return EXIT_USAGE
    setup_logging(settings.log_level)

    interfaces = list_interfaces()
    if args.list_interfaces:
        for iface in interfaces:
            print(iface.describe())
        return EXIT_OK
    for iface in interfaces:
        logger.debug("  {}", iface.describe())

    try:
        interface = select_interface(interfaces, criteria_for(settings.capture.interface))
    except RateWatchError as e:
        logger.error("{}", e)
        return EXIT_FATAL
    logger.info("Using interface: {}", interface.name)

    limiter = RateLimiter(settings.rate_limit.window_seconds, settings.rate_limit.threshold)
    sink = InfluxStorage.from_settings(settings.influx)
    manager = CaptureManager(interface, limiter,
                             poll_interval=settings.capture.poll_interval,
                             max_receive_retries=settings.capture.max_receive_retries,
                             violation_sink=sink, promisc=settings.capture.promisc)
    previous = _install_signal_handlers(manager)
    try:
        result = manager.run()
    except RateWatchError as e:
        logger.error("{}", e)
        return EXIT_FATAL
    finally:
        _restore_signal_handlers(previous)
        if sink is not None:
            sink.close()
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
