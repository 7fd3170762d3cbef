"""FastAPI server adapter for nero-tasks.

Design intent:
- Keep task, storage and recovery logic in `nero_tasks.*`
- Keep server-specific concerns (routing, response shapes) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from nero_tasks.server.app import create_app
