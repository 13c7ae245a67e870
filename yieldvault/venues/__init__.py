"""Venue Layer - external interest-bearing accounts.

Components:
- YieldVenue: Capability protocol consumed by allocation bridges
- VenueAccounts: Lazy, checkpointed interest bookkeeping
- InterestVenue: Shared base for book-backed venues
- SimpleInterestVenue / CompoundingVenue / FixedTermVenue: Concrete variants
"""

from yieldvault.venues.base import (
    BPS_DENOMINATOR,
    SECONDS_PER_YEAR,
    VenueAccounts,
    VenuePosition,
    YieldVenue,
    accrued_interest,
)
from yieldvault.venues.interest import (
    VENUE_TYPES,
    CompoundingVenue,
    FixedTermVenue,
    InterestVenue,
    SimpleInterestVenue,
)

__all__ = [
    "YieldVenue",
    "VenueAccounts",
    "VenuePosition",
    "InterestVenue",
    "SimpleInterestVenue",
    "CompoundingVenue",
    "FixedTermVenue",
    "VENUE_TYPES",
    "BPS_DENOMINATOR",
    "SECONDS_PER_YEAR",
    "accrued_interest",
]
