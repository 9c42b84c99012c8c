"""
Command-line interface for DeploySync.

Usage (examples):
  - One reconciliation pass against a live store:
      deploysync reconcile --entity my-app --phase Running --manifests ./manifests \
        --base-url http://127.0.0.1:8001 --token TEST

  - Plan only (no network calls):
      deploysync reconcile --entity my-app --phase Deploying --manifests ./manifests --dry-run

  - Offline positive patch between two documents:
      deploysync diff --live live.yml --desired desired.yml
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import yaml

from .core import codec
from .core.config import load_config
from .core.deployer import DeployerTrait, run_pass
from .core.environment import Entity, Environment
from .core.errors import ReconcileError
from .core.logging_setup import build_logger
from .core.positive_patch import compute_patch
from .core.resources import load_manifests
from .core.store import HttpResourceStore


def _read_document(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Document not found: {path}")
    with p.open("r", encoding="utf-8") as f:
        doc = yaml.safe_load(f) or {}
    if not isinstance(doc, dict):
        raise ValueError(f"Top-level document must be a mapping: {path}")
    return doc


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="deploysync", description="Phase-aware resource reconciliation")

    sub = p.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("reconcile", help="Run one reconciliation pass")
    r.add_argument("--entity", default="", help="Name of the reconciled entity")
    r.add_argument("--phase", required=True, help="Current phase of the entity (e.g. Deploying, Running)")
    r.add_argument("--manifests", required=True, help="Manifest file or directory (.yml/.yaml/.json)")
    r.add_argument("--namespace", default="", help="Namespace for namespaced manifests that do not set one")
    r.add_argument("--dry-run", action="store_true", help="Plan only, no network calls")

    # Store / HTTP
    r.add_argument("--base-url", default=None, help="Live store base URL")
    r.add_argument("--token", default=None, help="Live store API token")
    r.add_argument("--verify-tls", default=None, choices=["true", "false"], help="Verify TLS (https)")
    r.add_argument("--timeout-sec", type=float, default=None, help="HTTP timeout seconds")

    # Logging
    r.add_argument("--logs-dir", default=None, help="Logs base directory")
    r.add_argument("--console-level", default=None, help="Console log level (INFO..CRITICAL)")
    r.add_argument("--file-level", default=None, help="File log level (DEBUG..CRITICAL)")

    d = sub.add_parser("diff", help="Print the positive merge patch from a live to a desired document")
    d.add_argument("--live", required=True, help="Live document (YAML or JSON)")
    d.add_argument("--desired", required=True, help="Desired document (YAML or JSON)")

    return p


def _cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Only options given on the command line override file/env settings."""
    def pick(**kv: Optional[Any]) -> Dict[str, Any]:
        return {k: v for k, v in kv.items() if v is not None}

    out: Dict[str, Any] = {
        "app": {"dry_run": bool(args.dry_run)},
        "store": pick(
            base_url=args.base_url,
            token=args.token,
            verify_tls=None if args.verify_tls is None else args.verify_tls == "true",
            timeout_sec=args.timeout_sec,
        ),
        "logging": pick(
            base_dir=args.logs_dir,
            console_level=args.console_level,
            file_level=args.file_level,
        ),
        "entity": pick(name=args.entity or None, namespace=args.namespace or None),
    }
    return out


def _reconcile_cmd(args: argparse.Namespace) -> int:
    cfg = load_config(_cli_overrides(args))

    logger = build_logger(
        run_id=cfg.run_id,
        action="reconcile",
        base_dir=cfg.logging.base_dir,
        console_level=cfg.logging.console_level,
        file_level=cfg.logging.file_level,
        extra={"entity": cfg.entity.name, "phase": args.phase},
    )
    logger.info("Starting reconcile pass (dry_run=%s)", cfg.app.dry_run)

    resources = load_manifests(args.manifests, default_namespace=cfg.entity.namespace)
    logger.info("Loaded %s desired resource(s) from %s", len(resources), args.manifests)

    store = None
    if not cfg.app.dry_run:
        store = HttpResourceStore(
            cfg.store.base_url,
            cfg.store.token,
            verify_tls=bool(cfg.store.verify_tls),
            timeout_sec=cfg.store.timeout_sec,
            logger=logger,
        )

    env = Environment(
        entity=Entity(name=cfg.entity.name, phase=args.phase),
        store=store,
        resources=resources,
        logger=logger,
        dry_run=cfg.app.dry_run,
    )

    try:
        applied = run_pass(env, DeployerTrait())
    except ReconcileError as e:
        cause = e.__cause__
        logger.error("Reconcile failed: %s%s", e, f" ({cause})" if cause else "")
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    status = "applied" if applied else "skipped"
    logger.info("Reconcile pass %s", status)
    print(status)
    return 0


def _diff_cmd(args: argparse.Namespace) -> int:
    live = _read_document(args.live)
    desired = _read_document(args.desired)
    try:
        patch = compute_patch(live, desired)
    except ReconcileError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    print(codec.serialize(patch.delta).decode("utf-8"))
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.cmd == "reconcile":
        return _reconcile_cmd(args)
    if args.cmd == "diff":
        return _diff_cmd(args)

    parser.error("Unknown command")  # pragma: no cover
    return 2  # pragma: no cover


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
