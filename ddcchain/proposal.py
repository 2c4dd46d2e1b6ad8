"""Bridge proposals: vote tallies and resource identifiers."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

RESOURCE_ID_LEN = 32


class ProposalStatus(enum.Enum):
    INITIATED = "initiated"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class ProposalVotes:
    """The votes cast on one proposal, its status and the block it expires at."""

    votes_for: list[Any] = field(default_factory=list)
    votes_against: list[Any] = field(default_factory=list)
    status: ProposalStatus = ProposalStatus.INITIATED
    expiry: int = 0

    def try_to_complete(self, threshold: int, total: int) -> ProposalStatus:
        """Mark the proposal approved or rejected if the votes allow it.

        Returns the resulting status; ``INITIATED`` means nothing changed.
        """
        if len(self.votes_for) >= threshold:
            self.status = ProposalStatus.APPROVED
            return ProposalStatus.APPROVED
        if total >= threshold and len(self.votes_against) + threshold > total:
            self.status = ProposalStatus.REJECTED
            return ProposalStatus.REJECTED
        return ProposalStatus.INITIATED

    def is_complete(self) -> bool:
        return self.status is not ProposalStatus.INITIATED

    def has_voted(self, who: Any) -> bool:
        return who in self.votes_for or who in self.votes_against

    def is_expired(self, now: int) -> bool:
        return self.expiry <= now


def derive_resource_id(chain: int, id: bytes) -> bytes:
    """Build a 32-byte resource ID: up to 31 bytes of ``id``, left padded, then the chain ID."""
    body = bytes(id[: RESOURCE_ID_LEN - 1])
    padding = bytes(RESOURCE_ID_LEN - 1 - len(body))
    return padding + body + bytes([chain])