"""
Real-time event streaming for GraphQL subscriptions.

Provides the listener registry and the synthetic event producer that feeds it.
"""

from .registry import Listener, ListenerRegistry
from .producer import EventProducer, ProducerState, TodoEvent, build_synthetic_todo

__all__ = [
    "Listener",
    "ListenerRegistry",
    "EventProducer",
    "ProducerState",
    "TodoEvent",
    "build_synthetic_todo",
]
