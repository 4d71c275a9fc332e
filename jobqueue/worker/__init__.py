"""
Worker module.
Contains the worker entrypoint and built-in job handlers.
"""

from jobqueue.worker.main import build_queue, run

__all__ = ["build_queue", "run"]
