from __future__ import annotations

import argparse
import logging
import sys
from datetime import timedelta
from pathlib import Path

from pydantic import ValidationError

from .config import AppConfig, load_config
from .core.exceptions import F6nError
from .core.logging_config import setup_logging
from .providers import create_provider
from .version import info

logger = logging.getLogger("f6n.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="f6n",
        description="Terminal dashboard for AWS Lambda and GCP Cloud Functions.",
    )
    parser.add_argument(
        "--provider",
        help="Cloud provider: aws, gcp or sample (defaults to CLOUD_PROVIDER or aws)",
    )
    parser.add_argument("--region", help="AWS region (defaults to AWS_REGION or us-east-1)")
    parser.add_argument("--env", help="Environment name (defaults to STAGE or dev)")
    parser.add_argument("--profile", help="AWS profile to use (defaults to AWS_PROFILE)")
    parser.add_argument("--gcp-project", help="GCP project ID (defaults to GCP_PROJECT)")
    parser.add_argument(
        "--gcp-location", help="GCP location (defaults to GCP_LOCATION or us-central1)"
    )
    parser.add_argument("--log-level", help="Log level (debug, info, warning, error)")
    parser.add_argument(
        "--download-dir", help="Directory for downloaded code (defaults to DOWNLOAD_DIR or downloads)"
    )
    parser.add_argument(
        "-v", "--version", action="store_true", help="Show version information and exit"
    )
    return parser


def config_from_args(args: argparse.Namespace) -> AppConfig:
    return load_config(
        CLOUD_PROVIDER=args.provider.lower() if args.provider else None,
        AWS_REGION=args.region,
        STAGE=args.env,
        AWS_PROFILE=args.profile,
        GCP_PROJECT=args.gcp_project,
        GCP_LOCATION=args.gcp_location,
        LOG_LEVEL=args.log_level.upper() if args.log_level else None,
        DOWNLOAD_DIR=args.download_dir,
    )


def run(argv: list[str]) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(info())
        return 0

    try:
        config = config_from_args(args)
    except ValidationError as exc:
        print(f"Error: invalid configuration: {exc}", file=sys.stderr)
        return 1

    setup_logging(config.LOG_CONFIG_PATH, config.LOG_LEVEL, config.LOG_FILE)
    logger.info(f"Starting {info()} with provider={config.CLOUD_PROVIDER}")

    try:
        provider = create_provider(config)
    except F6nError as exc:
        logger.error(f"Failed to initialize provider: {exc}")
        print(f"Error: failed to initialize provider: {exc}", file=sys.stderr)
        return 1

    # Textual is only needed once we actually start the UI.
    from .services.archive import CodeArchiveManager
    from .ui.app import F6nApp
    from .ui.machine import StateMachine
    from .ui.state import HostInfo, ProviderInfo

    machine = StateMachine(
        ProviderInfo(
            name=provider.get_provider_name().value,
            region=provider.get_region(),
            environment=config.STAGE,
        ),
        HostInfo.collect(),
        log_limit=config.LOG_FETCH_LIMIT,
        metrics_window=timedelta(minutes=config.METRICS_WINDOW_MINUTES),
        buffer_size=config.STREAM_BUFFER_SIZE,
    )
    app = F6nApp(
        machine,
        provider,
        CodeArchiveManager(provider, Path(config.DOWNLOAD_DIR)),
        stream_interval=config.STREAM_POLL_INTERVAL,
        stream_lookback=config.STREAM_LOOKBACK_SECONDS,
    )
    app.run()
    logger.info("f6n exited")
    return 0


def main() -> int:
    return run(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(main())
