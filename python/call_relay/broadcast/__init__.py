"""Subscriber broadcast module."""
from .subscribers import Subscriber, SubscriberBroadcast

__all__ = ["Subscriber", "SubscriberBroadcast"]
