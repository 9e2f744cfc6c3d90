"""
Provision (or tear down) the resources one deployment stage needs.

    python -m redcloud.provision up --stage dev
    python -m redcloud.provision destroy --stage dev --quiet

Resources are realised locally: the SQL database named by ``DB_URL``, a
directory acting as the avatars bucket, and the in-process realtime hub.
Existing resources are adopted rather than recreated. The resulting
bindings are recorded in ``DATA_DIR/.provision/<stage>.json``; secret values
never land in that file, only whether each one is set.
"""

from __future__ import annotations

import argparse
import json
import logging
import shutil
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from . import models  # noqa: F401  (registers tables on Base.metadata)
from .core.config import AppSettings, settings
from .core.logging import configure_logging
from .core.timeutil import utcnow_iso
from .db.migrate import run_migrations
from .db.session import Base
from .db.session import engine as default_engine
from .services.realtime import REALTIME_KEYS

logger = logging.getLogger(__name__)

SECRET_BINDINGS = (
    "APP_SECRET",
    "RESEND_API_KEY",
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "GITHUB_CLIENT_ID",
    "GITHUB_CLIENT_SECRET",
)


def state_path(stage: str, config: AppSettings = settings) -> Path:
    return config.DATA_DIR / ".provision" / f"{stage}.json"


def _secret_is_set(name: str, config: AppSettings) -> bool:
    value = getattr(config, name, "") or ""
    # the shipped placeholder does not count as a configured secret
    return bool(value) and value != AppSettings.model_fields[name].default


def provision_database(engine: Engine, name: str) -> dict[str, Any]:
    adopted = bool(inspect(engine).get_table_names())
    Base.metadata.create_all(bind=engine)
    steps = run_migrations(engine)
    logger.info("provision.database", extra={"extra_data": {"name": name, "adopted": adopted}})
    return {"name": name, "url": engine.url.render_as_string(hide_password=True), "adopted": adopted,
            "migrations": steps}


def provision_bucket(path: Path, name: str) -> dict[str, Any]:
    adopted = path.is_dir()
    path.mkdir(parents=True, exist_ok=True)
    logger.info("provision.bucket", extra={"extra_data": {"name": name, "adopted": adopted}})
    return {"name": name, "path": str(path), "adopted": adopted}


def provision_realtime() -> dict[str, Any]:
    return {"class_name": "RealtimeHub", "keys": sorted(REALTIME_KEYS.all())}


def up(stage: str, *, config: AppSettings = settings, engine: Optional[Engine] = None) -> dict[str, Any]:
    """Create or adopt every resource for ``stage`` and record the bindings."""

    app_name = config.APP_NAME
    database = provision_database(engine or default_engine, f"{app_name}-db")
    bucket = provision_bucket(config.avatars_dir, f"{app_name}-avatars")
    realtime = provision_realtime()

    secrets = {name: _secret_is_set(name, config) for name in SECRET_BINDINGS}
    warnings = [f"Secret {name} is not set" for name, present in secrets.items() if not present]
    for warning in warnings:
        logger.warning(warning)

    state = {
        "app": app_name,
        "stage": stage,
        "provisioned_at": utcnow_iso(),
        "resources": {"db": database, "avatars": bucket, "realtime": realtime},
        "site": {
            "name": app_name,
            "url": config.BASE_URL,
            "bindings": {
                "DB": database["name"],
                "AVATARS_BUCKET": bucket["name"],
                "REALTIME_DURABLE_OBJECT": realtime["class_name"],
            },
            "secrets": secrets,
        },
        "warnings": warnings,
    }
    path = state_path(stage, config)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(state, indent=2), encoding="utf-8")
    logger.info("provision.up", extra={"extra_data": {"stage": stage, "state": str(path)}})
    return state


def destroy(stage: str, *, config: AppSettings = settings, engine: Optional[Engine] = None) -> list[str]:
    """Drop the schema, remove the bucket directory and forget the stage."""

    removed: list[str] = []
    Base.metadata.drop_all(bind=engine or default_engine)
    removed.append(f"{config.APP_NAME}-db")
    bucket = config.avatars_dir
    if bucket.exists():
        shutil.rmtree(bucket)
        removed.append(f"{config.APP_NAME}-avatars")
    path = state_path(stage, config)
    if path.exists():
        path.unlink()
        removed.append(str(path))
    logger.info("provision.destroy", extra={"extra_data": {"stage": stage, "removed": removed}})
    return removed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="redcloud-provision", description=__doc__.strip().splitlines()[0])
    parser.add_argument("phase", nargs="?", choices=("up", "destroy"), default="up")
    parser.add_argument("--stage", default=settings.STAGE, help="Deployment stage (default: %(default)s)")
    parser.add_argument("--quiet", action="store_true", help="Only log warnings and errors")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(logging.WARNING if args.quiet else logging.INFO)

    if args.phase == "destroy":
        destroy(args.stage)
        return 0

    state = up(args.stage)
    if not args.quiet:
        print(f"Site:   {state['site']['url']}")
        print(f"State:  {state_path(args.stage)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
