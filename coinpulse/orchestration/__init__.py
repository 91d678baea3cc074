"""Orchestration Layer.

Components:
- PollingController: Scheduled refresh of subscribed queries
- VisibilitySignal: Host-surface visibility flag that gates polling
- SubscriptionState / PollUpdate: Per-key polling state and tick outcome
"""

from coinpulse.orchestration.polling import (
    PollingController,
    PollUpdate,
    SubscriptionState,
    VisibilitySignal,
)

__all__ = [
    "PollingController",
    "PollUpdate",
    "SubscriptionState",
    "VisibilitySignal",
]
