"""CLI entry: pushfanout send|run [--config path] [--dry-run]."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from pushfanout.config import config_from_env, load_config
from pushfanout.runner import build_backend, run
from pushfanout.service import NotificationService

DEFAULT_CONFIG = "config/config.yaml"
LOG_DIR = Path("logs")


def _setup_logging() -> None:
    LOG_DIR.mkdir(exist_ok=True)
    log_file = LOG_DIR / "app.log"
    fmt = "%(asctime)s %(levelname)s %(name)s %(message)s"
    formatter = logging.Formatter(fmt)
    root = logging.getLogger()
    root.setLevel(logging.INFO)
    if not root.handlers:
        h_stderr = logging.StreamHandler(sys.stderr)
        h_stderr.setFormatter(formatter)
        root.addHandler(h_stderr)
        h_file = logging.FileHandler(log_file, encoding="utf-8")
        h_file.setFormatter(formatter)
        root.addHandler(h_file)


def _parse_data(pairs: list[str]) -> dict[str, Any]:
    """key=value pairs; values that parse as JSON keep their type."""
    data: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"--data expects key=value, got {pair!r}")
        try:
            data[key] = json.loads(value)
        except ValueError:
            data[key] = value
    return data


def build_request(args: argparse.Namespace) -> dict[str, Any]:
    request: dict[str, Any] = {
        "title": args.title,
        "body": args.body,
        "type": args.type,
        "audience": args.audience,
    }
    if args.user_id:
        request["userIds"] = args.user_id
    if args.data:
        request["data"] = _parse_data(args.data)
    return request


def _send(args: argparse.Namespace) -> int:
    if Path(args.config).exists():
        config = load_config(args.config)
    else:
        logging.info("config %s not found, using environment only", args.config)
        config = config_from_env()
    service = NotificationService(config, build_backend(config, args.dry_run))
    result = service.handle(build_request(args))
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    return 0 if result.success else 1


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Push notification fan-out")
    sub = parser.add_subparsers(dest="command", required=True)

    send_parser = sub.add_parser("send", help="Send one notification")
    send_parser.add_argument("--title", required=True)
    send_parser.add_argument("--body", required=True)
    send_parser.add_argument("--type", default="general")
    send_parser.add_argument("--audience", default="all", help="all, specific or a configured audience tag")
    send_parser.add_argument("--user-id", action="append", default=[], help="Recipient user id (audience=specific)")
    send_parser.add_argument("--data", action="append", default=[], help="Custom payload field key=value")

    run_parser = sub.add_parser("run", help="Send scheduled notifications")
    run_parser.add_argument(
        "--schedule",
        default=None,
        help="Run only this schedule id (default: match by cron)",
    )

    for p in (send_parser, run_parser):
        p.add_argument(
            "--config",
            default=DEFAULT_CONFIG,
            help=f"Config file path (default: {DEFAULT_CONFIG})",
        )
        p.add_argument(
            "--dry-run",
            action="store_true",
            help="Resolve targets and log the notification but do not send or record it",
        )
    args = parser.parse_args(argv)

    load_dotenv()
    _setup_logging()

    try:
        if args.command == "send":
            sys.exit(_send(args))
        elif args.command == "run":
            results = run(args.config, args.schedule, args.dry_run)
            sys.exit(0 if all(r.success for r in results) else 1)
    except FileNotFoundError as e:
        logging.error("%s", e)
        sys.exit(1)
    except ValueError as e:
        logging.error("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
