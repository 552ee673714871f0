# leftoverlink/core/states.py
from leftoverlink.schemas import ClaimStatus, ListingStatus

TERMINAL = {ListingStatus.EXPIRED.value, ListingStatus.COMPLETED.value}

# expired only ever comes from the clock; claimed/completed from claim review
TRANSITIONS = {
    ("available", "expired"):   {"by": "sweep"},
    ("available", "claimed"):   {"by": "owner"},
    ("available", "completed"): {"by": "owner"},
    ("claimed",   "completed"): {"by": "owner"},
}

CLAIM_TRANSITIONS = {
    ("pending",  "approved"),
    ("pending",  "rejected"),
    ("approved", "completed"),
}

# listing status a claim review drives the listing into
CLAIM_EFFECTS = {
    ClaimStatus.APPROVED.value: ListingStatus.CLAIMED.value,
    ClaimStatus.COMPLETED.value: ListingStatus.COMPLETED.value,
}


def can_transition(src: str, dst: str) -> bool:
    return (src, dst) in TRANSITIONS


def can_review(src: str, dst: str) -> bool:
    return (src, dst) in CLAIM_TRANSITIONS


def is_terminal(status: str) -> bool:
    return status in TERMINAL
