from .models import Direction, Estimate, Offer, RawOffer, ScoredOffer
from .normalize import normalize, normalize_batch

__all__ = [
    "Direction",
    "Estimate",
    "Offer",
    "RawOffer",
    "ScoredOffer",
    "normalize",
    "normalize_batch",
]
