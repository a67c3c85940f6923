from .cache import CacheEntry, EntryState, QueryCache
from .client import MarketDataClient
from .dispatcher import RequestDispatcher
from .errors import DataAccessError, DecodeError, HttpStatusError, SchemaMismatch, TransportError
from .formatting import format_change, format_price, format_volume
from .preferences import PreferenceRecord, PreferenceStore
from .query import Query

__all__ = [
    "CacheEntry",
    "DataAccessError",
    "DecodeError",
    "EntryState",
    "HttpStatusError",
    "MarketDataClient",
    "PreferenceRecord",
    "PreferenceStore",
    "Query",
    "QueryCache",
    "RequestDispatcher",
    "SchemaMismatch",
    "TransportError",
    "format_change",
    "format_price",
    "format_volume",
]
