"""Cache-backed data access for apiflight.

Classes:
    :class:`Accessor` -- endpoint plus cache id and post-actions.
    :class:`DataService` -- load, send, paginate and clear cached data.
    :class:`SingleFlight` -- one in-flight call per canonical request key.
"""

from apiflight.data.accessor import Accessor, merge_page
from apiflight.data.coordinator import FlightStats, SingleFlight
from apiflight.data.service import DataService, create_data_service

__all__ = [
    "Accessor",
    "DataService",
    "FlightStats",
    "SingleFlight",
    "create_data_service",
    "merge_page",
]
