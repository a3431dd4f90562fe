import argparse
import asyncio
import logging
import sys

from conformance.config import load_settings
from conformance.connection import probe_node
from conformance.errors import LedgerConnectionError
from conformance.logging_config import setup_logging
from conformance.runner import run_suite
from conformance.scenarios import ordered_cases

log = logging.getLogger("conformance")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_SETUP = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="rippled-conformance", description="Conformance checks against a standalone rippled node")
    p.add_argument("--ws-url", help="websocket URL of the node (default from config / WS_URL)")
    p.add_argument("--rpc-url", help="JSON-RPC URL used for the readiness probe (default from config / RPC_URL)")
    p.add_argument("--config", help="path to a config.toml to use instead of the packaged one")
    p.add_argument("--case", action="append", dest="cases", metavar="NAME", help="run only this case (repeatable)")
    p.add_argument("--list", action="store_true", help="list registered cases and exit")
    p.add_argument("--no-probe", action="store_true", help="skip the server_info readiness probe")
    p.add_argument("--timeout", type=float, help="per-case timeout in seconds")
    p.add_argument("--log-level", help="override LOG_LEVEL")
    return p.parse_args(argv)


async def _main(args: argparse.Namespace) -> int:
    settings = load_settings(args.config).with_overrides(
        ws_url=args.ws_url,
        rpc_url=args.rpc_url,
        case_timeout=args.timeout,
    )
    try:
        cases = ordered_cases(args.cases)
    except KeyError as e:
        log.error("%s", e.args[0])
        return EXIT_SETUP

    if not args.no_probe:
        try:
            info = await probe_node(settings.rpc_url, settings.probe_retries, settings.probe_delay)
        except LedgerConnectionError as e:
            log.error("Node not reachable: %s", e)
            return EXIT_SETUP
        log.info("Node %s is up: %s", settings.rpc_url, info.get("info", {}).get("build_version", "?"))

    report = await run_suite(settings, cases)
    if report.setup_error is not None:
        return EXIT_SETUP
    for case in report.cases:
        log.info("%s", case)
    return EXIT_OK if report.passed else EXIT_FAILED


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)
    if args.list:
        for spec in ordered_cases():
            print(f"{spec.name}{'  (standalone only)' if spec.standalone_only else ''}")
        return EXIT_OK
    try:
        return asyncio.run(_main(args))
    except KeyboardInterrupt:
        log.warning("Interrupted")
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
