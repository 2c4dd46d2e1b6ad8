"""A multi-signature bridge: relayers vote on proposals from other chains."""

from __future__ import annotations

import enum
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Hashable, Iterator, Optional

from ddcchain.origin import Origin
from ddcchain.proposal import ProposalStatus, ProposalVotes

DEFAULT_RELAYER_THRESHOLD = 1
MODULE_ID = b"cb/bridg"
_ACCOUNT_PREFIX = b"modl"
_ACCOUNT_LEN = 32


def bridge_account_id() -> bytes:
    """The account the bridge acts as when it executes an approved proposal."""
    raw = _ACCOUNT_PREFIX + MODULE_ID
    return raw + bytes(_ACCOUNT_LEN - len(raw))


class BridgeErrorKind(enum.Enum):
    THRESHOLD_NOT_SET = "relayer threshold not set"
    INVALID_CHAIN_ID = "provided chain id is not valid"
    INVALID_THRESHOLD = "relayer threshold cannot be 0"
    CHAIN_NOT_WHITELISTED = "interactions with this chain are not permitted"
    CHAIN_ALREADY_WHITELISTED = "chain has already been enabled"
    RESOURCE_DOES_NOT_EXIST = "resource id is not mapped to anything"
    RELAYER_ALREADY_EXISTS = "relayer already in set"
    RELAYER_INVALID = "account is not a relayer"
    MUST_BE_RELAYER = "operation must be performed by a relayer"
    RELAYER_ALREADY_VOTED = "relayer has already voted on this proposal"
    PROPOSAL_ALREADY_EXISTS = "proposal with these parameters already exists"
    PROPOSAL_DOES_NOT_EXIST = "no proposal with this id was found"
    PROPOSAL_NOT_COMPLETE = "proposal needs more votes"
    PROPOSAL_ALREADY_COMPLETE = "proposal has either failed or succeeded"
    PROPOSAL_EXPIRED = "lifetime of proposal has been exceeded"


class BridgeError(Exception):
    """A bridge call was refused."""

    def __init__(self, kind: BridgeErrorKind) -> None:
        super().__init__(kind.value)
        self.kind = kind


@dataclass(frozen=True)
class BridgeEvent:
    """Something the bridge reported, e.g. ``BridgeEvent("VoteFor", (1, 1, relayer))``."""

    kind: str
    data: tuple = ()


def _call_proposal(call: Callable[[Origin], Any], origin: Origin) -> None:
    call(origin)


@dataclass
class _State:
    chain_nonces: dict[int, int] = field(default_factory=dict)
    relayer_threshold: int = DEFAULT_RELAYER_THRESHOLD
    relayers: set[Any] = field(default_factory=set)
    relayer_count: int = 0
    votes: dict[tuple, ProposalVotes] = field(default_factory=dict)
    resources: dict[bytes, bytes] = field(default_factory=dict)
    events: list[BridgeEvent] = field(default_factory=list)

    def copy(self) -> "_State":
        return _State(
            chain_nonces=dict(self.chain_nonces),
            relayer_threshold=self.relayer_threshold,
            relayers=set(self.relayers),
            relayer_count=self.relayer_count,
            votes={key: _copy_votes(v) for key, v in self.votes.items()},
            resources=dict(self.resources),
            events=list(self.events),
        )


def _copy_votes(votes: ProposalVotes) -> ProposalVotes:
    return replace(
        votes, votes_for=list(votes.votes_for), votes_against=list(votes.votes_against)
    )


class Bridge:
    """Bridge state and its calls.

    Every call is transactional: if it raises, no state or event it produced is kept.
    Proposals are hashable callables; an approved proposal is dispatched with a signed
    origin of the bridge account, via ``dispatch`` if one is given.
    """

    def __init__(
        self,
        chain_id: int,
        proposal_lifetime: int,
        block_number: int = 0,
        dispatch: Optional[Callable[[Any, Origin], Any]] = None,
    ) -> None:
        self.chain_id = chain_id
        self.proposal_lifetime = proposal_lifetime
        self.block_number = block_number
        self._dispatch = dispatch or _call_proposal
        self._state = _State()

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        snapshot = self._state.copy()
        try:
            yield
        except BaseException:
            self._state = snapshot
            raise

    def _emit(self, kind: str, *data: Any) -> None:
        self._state.events.append(BridgeEvent(kind, tuple(data)))

    # Queries

    @property
    def events(self) -> list[BridgeEvent]:
        return list(self._state.events)

    @property
    def relayer_threshold(self) -> int:
        return self._state.relayer_threshold

    @property
    def relayer_count(self) -> int:
        return self._state.relayer_count

    def account_id(self) -> bytes:
        return bridge_account_id()

    def is_relayer(self, who: Any) -> bool:
        return who in self._state.relayers

    def resource(self, id: bytes) -> Optional[bytes]:
        return self._state.resources.get(bytes(id))

    def resource_exists(self, id: bytes) -> bool:
        return bytes(id) in self._state.resources

    def chain_whitelisted(self, id: int) -> bool:
        return id in self._state.chain_nonces

    def chain_nonce(self, id: int) -> Optional[int]:
        return self._state.chain_nonces.get(id)

    def votes(self, src_id: int, nonce: int, prop: Hashable) -> Optional[ProposalVotes]:
        found = self._state.votes.get((src_id, nonce, prop))
        return None if found is None else _copy_votes(found)

    # Admin calls

    def set_threshold(self, origin: Origin, threshold: int) -> None:
        origin.ensure_root()
        with self._transaction():
            if threshold <= 0:
                raise BridgeError(BridgeErrorKind.INVALID_THRESHOLD)
            self._state.relayer_threshold = threshold
            self._emit("RelayerThresholdChanged", threshold)

    def set_resource(self, origin: Origin, id: bytes, method: bytes) -> None:
        origin.ensure_root()
        with self._transaction():
            self._state.resources[bytes(id)] = bytes(method)

    def remove_resource(self, origin: Origin, id: bytes) -> None:
        origin.ensure_root()
        with self._transaction():
            self._state.resources.pop(bytes(id), None)

    def whitelist_chain(self, origin: Origin, id: int) -> None:
        origin.ensure_root()
        with self._transaction():
            if id == self.chain_id:
                raise BridgeError(BridgeErrorKind.INVALID_CHAIN_ID)
            if self.chain_whitelisted(id):
                raise BridgeError(BridgeErrorKind.CHAIN_ALREADY_WHITELISTED)
            self._state.chain_nonces[id] = 0
            self._emit("ChainWhitelisted", id)

    def add_relayer(self, origin: Origin, v: Any) -> None:
        origin.ensure_root()
        with self._transaction():
            if self.is_relayer(v):
                raise BridgeError(BridgeErrorKind.RELAYER_ALREADY_EXISTS)
            self._state.relayers.add(v)
            self._state.relayer_count += 1
            self._emit("RelayerAdded", v)

    def remove_relayer(self, origin: Origin, v: Any) -> None:
        origin.ensure_root()
        with self._transaction():
            if not self.is_relayer(v):
                raise BridgeError(BridgeErrorKind.RELAYER_INVALID)
            self._state.relayers.discard(v)
            self._state.relayer_count -= 1
            self._emit("RelayerRemoved", v)

    # Relayer calls

    def _check_relayer_call(self, who: Any, src_id: int, r_id: bytes) -> None:
        if not self.is_relayer(who):
            raise BridgeError(BridgeErrorKind.MUST_BE_RELAYER)
        if not self.chain_whitelisted(src_id):
            raise BridgeError(BridgeErrorKind.CHAIN_NOT_WHITELISTED)
        if not self.resource_exists(r_id):
            raise BridgeError(BridgeErrorKind.RESOURCE_DOES_NOT_EXIST)

    def acknowledge_proposal(
        self, origin: Origin, nonce: int, src_id: int, r_id: bytes, call: Hashable
    ) -> None:
        """Vote in favour of a proposal, creating it if needed, and execute it once approved."""
        who = origin.ensure_signed()
        with self._transaction():
            self._check_relayer_call(who, src_id, r_id)
            self._commit_vote(who, nonce, src_id, call, in_favour=True)
            self._try_resolve_proposal(nonce, src_id, call)

    def reject_proposal(
        self, origin: Origin, nonce: int, src_id: int, r_id: bytes, call: Hashable
    ) -> None:
        """Vote against a proposal and cancel it once it can no longer pass."""
        who = origin.ensure_signed()
        with self._transaction():
            self._check_relayer_call(who, src_id, r_id)
            self._commit_vote(who, nonce, src_id, call, in_favour=False)
            self._try_resolve_proposal(nonce, src_id, call)

    def eval_vote_state(self, origin: Origin, nonce: int, src_id: int, prop: Hashable) -> None:
        """Re-evaluate a proposal against the current threshold."""
        origin.ensure_signed()
        with self._transaction():
            self._try_resolve_proposal(nonce, src_id, prop)

    def _commit_vote(
        self, who: Any, nonce: int, src_id: int, prop: Hashable, in_favour: bool
    ) -> None:
        now = self.block_number
        key = (src_id, nonce, prop)
        votes = self._state.votes.get(key)
        votes = (
            ProposalVotes(expiry=now + self.proposal_lifetime)
            if votes is None
            else _copy_votes(votes)
        )
        if votes.is_complete():
            raise BridgeError(BridgeErrorKind.PROPOSAL_ALREADY_COMPLETE)
        if votes.is_expired(now):
            raise BridgeError(BridgeErrorKind.PROPOSAL_EXPIRED)
        if votes.has_voted(who):
            raise BridgeError(BridgeErrorKind.RELAYER_ALREADY_VOTED)
        if in_favour:
            votes.votes_for.append(who)
            self._emit("VoteFor", src_id, nonce, who)
        else:
            votes.votes_against.append(who)
            self._emit("VoteAgainst", src_id, nonce, who)
        self._state.votes[key] = votes

    def _try_resolve_proposal(self, nonce: int, src_id: int, prop: Hashable) -> None:
        key = (src_id, nonce, prop)
        votes = self._state.votes.get(key)
        if votes is None:
            raise BridgeError(BridgeErrorKind.PROPOSAL_DOES_NOT_EXIST)
        if votes.is_complete():
            raise BridgeError(BridgeErrorKind.PROPOSAL_ALREADY_COMPLETE)
        if votes.is_expired(self.block_number):
            raise BridgeError(BridgeErrorKind.PROPOSAL_EXPIRED)
        status = votes.try_to_complete(self._state.relayer_threshold, self._state.relayer_count)
        if status is ProposalStatus.APPROVED:
            self._emit("ProposalApproved", src_id, nonce)
            self._dispatch(prop, Origin.signed(self.account_id()))
            self._emit("ProposalSucceeded", src_id, nonce)
        elif status is ProposalStatus.REJECTED:
            self._emit("ProposalRejected", src_id, nonce)

    # Outbound transfers, called by other modules

    def _bump_nonce(self, id: int) -> int:
        nonce = self._state.chain_nonces.get(id, 0) + 1
        self._state.chain_nonces[id] = nonce
        return nonce

    def _check_transfer(self, dest_id: int, resource_id: bytes) -> None:
        if not self.chain_whitelisted(dest_id):
            raise BridgeError(BridgeErrorKind.CHAIN_NOT_WHITELISTED)
        if not self.resource_exists(resource_id):
            raise BridgeError(BridgeErrorKind.RESOURCE_DOES_NOT_EXIST)

    def transfer_fungible(self, dest_id: int, resource_id: bytes, to: bytes, amount: int) -> None:
        with self._transaction():
            self._check_transfer(dest_id, resource_id)
            nonce = self._bump_nonce(dest_id)
            self._emit("FungibleTransfer", dest_id, nonce, bytes(resource_id), amount, bytes(to))

    def transfer_nonfungible(
        self, dest_id: int, resource_id: bytes, token_id: bytes, to: bytes, metadata: bytes
    ) -> None:
        with self._transaction():
            self._check_transfer(dest_id, resource_id)
            nonce = self._bump_nonce(dest_id)
            self._emit(
                "NonFungibleTransfer",
                dest_id,
                nonce,
                bytes(resource_id),
                bytes(token_id),
                bytes(to),
                bytes(metadata),
            )

    def transfer_generic(self, dest_id: int, resource_id: bytes, metadata: bytes) -> None:
        with self._transaction():
            self._check_transfer(dest_id, resource_id)
            nonce = self._bump_nonce(dest_id)
            self._emit("GenericTransfer", dest_id, nonce, bytes(resource_id), bytes(metadata))