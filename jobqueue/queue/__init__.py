"""
Queue module.
Contains the queue facade, the dispatcher, and the handler registry.
"""

from jobqueue.queue.dispatcher import Dispatcher
from jobqueue.queue.registry import HandlerRegistry, JobHandler
from jobqueue.queue.service import QueueService

__all__ = [
    "QueueService",
    "Dispatcher",
    "HandlerRegistry",
    "JobHandler",
]
