"""Business logic services.

This module contains service-layer functions and objects that implement
business logic. Route handlers and the scheduler call into them.
"""

from precious.services.dispatch import DispatchJob, DispatchResult, DispatchStatus
from precious.services.messages import MessageBank, default_message_bank, personalize
from precious.services.push import PushGateway, PushMessage, build_push_gateway
from precious.services.scheduler import PushScheduler

__all__ = [
    "DispatchJob",
    "DispatchResult",
    "DispatchStatus",
    "MessageBank",
    "default_message_bank",
    "personalize",
    "PushGateway",
    "PushMessage",
    "build_push_gateway",
    "PushScheduler",
]
