"""Run signals exchanged between soak workers and the aggregator."""

from common.messaging.signals import RunSignal, SignalType

__all__ = ["RunSignal", "SignalType"]
