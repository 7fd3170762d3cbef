"""CLI entrypoint for inspecting and maintaining persisted task state."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence

from pydantic import ValidationError

from nero_tasks import __version__
from nero_tasks.config import TaskSettings
from nero_tasks.context import TaskContext, build_context
from nero_tasks.logging import configure_logging
from nero_tasks.screens import SCREENS

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nero-tasks",
        description="Inspect and maintain persisted results and screen state",
    )
    parser.add_argument("--version", action="version", version=f"nero-tasks {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "cleanup",
        help="Run the result and view-state eviction sweeps (as on background entry)",
    )
    subparsers.add_parser("results", help="List persisted result envelopes")

    show_view = subparsers.add_parser("show-view", help="Print the saved state of one screen")
    show_view.add_argument("view_kind", choices=sorted(SCREENS), help="Screen kind")
    show_view.add_argument(
        "--associations",
        action="store_true",
        help="Also list task ids associated with the screen",
    )
    return parser


def _cmd_cleanup(ctx: TaskContext) -> int:
    removed_results, removed_views = ctx.lifecycle.entered_background()
    print(f"Removed {removed_results} results and {removed_views} view states/associations")
    return 0


def _cmd_results(ctx: TaskContext) -> int:
    ids = ctx.results.list_ids()
    if not ids:
        print("No persisted results")
        return 0
    for task_id in ids:
        envelope = ctx.results.load_envelope(task_id)
        if envelope is None:
            continue
        print(f"{envelope.saved_at.isoformat()}  {envelope.kind.value:<24}  {task_id}")
    return 0


def _cmd_show_view(ctx: TaskContext, view_kind: str, *, associations: bool) -> int:
    snapshot = ctx.views.load_state(view_kind)
    if snapshot is None:
        print(f"No saved state for {view_kind}")
        return 1
    print(json.dumps(snapshot.model_dump(mode="json"), indent=2, ensure_ascii=False))
    if associations:
        for task_id in ctx.views.associations_for(view_kind):
            print(f"associated: {task_id}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = TaskSettings()
    except ValidationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level)
    ctx = build_context(settings)

    if args.command == "cleanup":
        return _cmd_cleanup(ctx)
    if args.command == "results":
        return _cmd_results(ctx)
    if args.command == "show-view":
        return _cmd_show_view(ctx, args.view_kind, associations=args.associations)

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
