#!/usr/bin/env python3
"""CLI for certificate studio management tasks.

Usage:
    python -m cli <command>

Commands:
    migrate    Run database migrations
    render     Render a design for one recipient (payload JSON or HTML)
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from alembic import command
from alembic.config import Config
from pydantic import ValidationError

from core.config import get_settings
from rendering import DesignSnapshot, project_to_html, render_payload
from schemas import RecipientInput

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

API_DIR = Path(__file__).resolve().parent


def get_alembic_config(database_url: str | None = None) -> Config:
    """Alembic config that works from any working directory."""
    cfg = Config()
    cfg.set_main_option("script_location", str(API_DIR / "alembic"))
    if database_url:
        cfg.set_main_option("sqlalchemy.url", database_url)
    return cfg


def cmd_migrate(target: str = "head") -> int:
    """Run database migrations."""
    logger.info("Running database migrations...")
    command.upgrade(get_alembic_config(), target)
    logger.info("Migrations complete")
    return 0


def _load_json(path: str) -> Any:
    if path == "-":
        return json.load(sys.stdin)
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _design_from_document(document: Any) -> DesignSnapshot:
    """Accept either a stored design record or a bare canvas document."""
    if isinstance(document, dict) and "design_data" in document:
        return DesignSnapshot.model_validate(document)
    return DesignSnapshot(design_data=document)


def cmd_render(
    design_path: str,
    recipient_path: str,
    *,
    as_html: bool = False,
    asset_base_url: str | None = None,
) -> int:
    """Render a design for one recipient and print the result to stdout."""
    try:
        design = _design_from_document(_load_json(design_path))
        recipient = RecipientInput.model_validate(_load_json(recipient_path))
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Could not read input: {e}")
        return 2
    except ValidationError as e:
        logger.error(f"Invalid input: {e}")
        return 2

    payload = render_payload(design, recipient)
    if payload is None:
        logger.warning("Design has nothing to render yet")
        return 1

    if as_html:
        if asset_base_url is None:
            asset_base_url = get_settings().asset_base_url
        sys.stdout.write(project_to_html(payload, asset_base_url=asset_base_url))
    else:
        json.dump(payload.to_dict(), sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Certificate Studio CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    migrate = subparsers.add_parser(
        "migrate",
        help="Run database migrations",
    )
    migrate.add_argument(
        "target",
        nargs="?",
        default="head",
        help="Target revision (default: head)",
    )

    render = subparsers.add_parser(
        "render",
        help="Render a design for one recipient",
    )
    render.add_argument("design", help="Design JSON file ('-' for stdin)")
    render.add_argument("recipient", help="Recipient JSON file ('-' for stdin)")
    render.add_argument(
        "--html",
        action="store_true",
        help="Print the projected HTML page instead of the payload JSON",
    )
    render.add_argument(
        "--asset-base-url",
        default=None,
        help="Base URL for relative image paths (default: ASSET_BASE_URL)",
    )

    args = parser.parse_args(argv)

    if args.command == "migrate":
        return cmd_migrate(args.target)
    elif args.command == "render":
        return cmd_render(
            args.design,
            args.recipient,
            as_html=args.html,
            asset_base_url=args.asset_base_url,
        )
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
