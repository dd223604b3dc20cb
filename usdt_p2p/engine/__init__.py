from .aggregator import Aggregator, PooledOffers, SlotReport
from .cache import SnapshotCache, Slot, Staleness, classify
from .errors import InvalidRequestError, ServiceUnavailableError
from .ranking import best_price, is_eligible, rank, score_offer
from .scheduler import RefreshScheduler
from .service import OfferSearchService, SearchResult

__all__ = [
    "Aggregator",
    "InvalidRequestError",
    "OfferSearchService",
    "PooledOffers",
    "RefreshScheduler",
    "SearchResult",
    "ServiceUnavailableError",
    "Slot",
    "SlotReport",
    "SnapshotCache",
    "Staleness",
    "best_price",
    "classify",
    "is_eligible",
    "rank",
    "score_offer",
]
