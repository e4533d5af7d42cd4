"""State layer.

Holds the ``(data, loading, error)`` triple each live subscription exposes to
its caller.
"""

from portalsync.state.subscription import SubscriptionState

__all__ = ["SubscriptionState"]
