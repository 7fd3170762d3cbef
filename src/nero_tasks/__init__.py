"""Nero tasks.

Durable, recoverable execution of long-running AI operations:
- an in-memory task registry that runs operations independently of screens
- durable result and per-screen state stores
- a reconciliation protocol screens run when they become active again
"""

__version__ = "0.1.0"

from nero_tasks.config import TaskSettings

__all__ = ["__version__", "TaskSettings"]
