"""Observable values, table invalidation tracking and live queries."""

from common.live.invalidation import InvalidationTracker
from common.live.live_data import LiveData, MutableLiveData, Subscription
from common.live.live_query import LiveQuery

__all__ = [
    "InvalidationTracker",
    "LiveData",
    "LiveQuery",
    "MutableLiveData",
    "Subscription",
]
