"""
In-process Background Job Queue

An asyncio job dispatcher with bounded concurrency, priority ordering,
retry/dead-letter semantics, and restart recovery through a pluggable store.
"""

__version__ = "1.0.0"
