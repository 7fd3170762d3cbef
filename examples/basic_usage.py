#!/usr/bin/env python3
"""Programmatic meal logging example.

This demonstrates using the task components directly:

* load settings from `.env` (needs `NERO_LLM_API_KEY`)
* open the meal logging screen and reconcile any earlier work
* parse a meal description as a recoverable task
* print the screen history once the task settles

Run it twice with `--detach` first: the second run picks the result up
through reconciliation instead of the live callback.
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Sequence

from nero_tasks.config import TaskSettings
from nero_tasks.context import build_context
from nero_tasks.llm import AIOperations, OpenAIProvider
from nero_tasks.logging import configure_logging
from nero_tasks.screens import MacroChatScreen, ScreenBusyError


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Log a meal (programmatic example).")
    parser.add_argument("description", nargs="?", default="", help="What you ate")
    parser.add_argument(
        "--detach",
        action="store_true",
        help="Leave the screen before the task finishes",
    )
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> int:
    settings = TaskSettings()
    configure_logging(settings.log_level)

    context = build_context(settings)
    context.start_sweeper()
    screen = context.open_screen(MacroChatScreen)

    outcome = screen.on_appear()
    print(f"Reconciled: {outcome.value}")

    if args.description:
        ops = AIOperations(OpenAIProvider(settings))
        try:
            task_id = screen.start_operation(
                ops.parse_meal(args.description), user_text=args.description
            )
        except ScreenBusyError as exc:
            print(str(exc))
            await context.shutdown()
            return 1
        if args.detach:
            screen.on_disappear()
        await context.registry.wait(task_id)

    for entry in screen.entries:
        who = "you" if entry.is_from_user else "ai"
        print(f"[{who}] {entry.text}")
    if screen.error_message:
        print(screen.error_message)

    context.close_screen(screen)
    await context.shutdown()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    return asyncio.run(_run(_parse_args(argv)))


if __name__ == "__main__":
    raise SystemExit(main())
