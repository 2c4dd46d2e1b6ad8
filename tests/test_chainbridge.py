from dataclasses import dataclass

import pytest

from ddcchain.chainbridge import Bridge, BridgeError, BridgeErrorKind, BridgeEvent
from ddcchain.origin import BadOrigin, Origin
from ddcchain.proposal import ProposalStatus, ProposalVotes, derive_resource_id

TEST_CHAIN_ID = 5
PROPOSAL_LIFETIME = 50
RELAYER_A = 0x2
RELAYER_B = 0x3
RELAYER_C = 0x4
TEST_THRESHOLD = 2


@dataclass(frozen=True)
class Remark:
    remark: bytes

    def __call__(self, origin):
        return None


@dataclass(frozen=True)
class Failing:
    tag: int

    def __call__(self, origin):
        raise RuntimeError("dispatch failed")


def new_bridge():
    return Bridge(TEST_CHAIN_ID, PROPOSAL_LIFETIME, block_number=1)


def new_bridge_initialized(src_id, r_id, resource):
    bridge = new_bridge()
    bridge.set_threshold(Origin.root(), TEST_THRESHOLD)
    assert bridge.relayer_threshold == TEST_THRESHOLD
    for relayer in (RELAYER_A, RELAYER_B, RELAYER_C):
        bridge.add_relayer(Origin.root(), relayer)
    bridge.whitelist_chain(Origin.root(), src_id)
    bridge.set_resource(Origin.root(), r_id, resource)
    assert bridge.resource_exists(r_id)
    return bridge


def assert_events(bridge, expected):
    actual = bridge.events
    assert len(actual) >= len(expected)
    assert actual[len(actual) - len(expected):] == expected


def test_derive_ids():
    chain = 1
    id = bytes([0x21, 0x60, 0x5F, 0x71, 0x84, 0x5F, 0x37, 0x2A, 0x9E, 0xD8,
                0x42, 0x53, 0xD2, 0xD0, 0x24, 0xB7, 0xB1, 0x09, 0x99, 0xF4])
    expected = bytes(11) + id + bytes([chain])
    assert derive_resource_id(chain, id) == expected


def test_setup_resources():
    bridge = new_bridge()
    id = bytes([1] * 32)
    bridge.set_resource(Origin.root(), id, b"Pallet.do_something")
    assert bridge.resource(id) == b"Pallet.do_something"
    bridge.set_resource(Origin.root(), id, b"Pallet.do_somethingElse")
    assert bridge.resource(id) == b"Pallet.do_somethingElse"
    bridge.remove_resource(Origin.root(), id)
    assert bridge.resource(id) is None


def test_whitelist_chain():
    bridge = new_bridge()
    assert not bridge.chain_whitelisted(0)
    bridge.whitelist_chain(Origin.root(), 0)
    with pytest.raises(BridgeError) as err:
        bridge.whitelist_chain(Origin.root(), TEST_CHAIN_ID)
    assert err.value.kind is BridgeErrorKind.INVALID_CHAIN_ID
    with pytest.raises(BridgeError) as err:
        bridge.whitelist_chain(Origin.root(), 0)
    assert err.value.kind is BridgeErrorKind.CHAIN_ALREADY_WHITELISTED
    assert_events(bridge, [BridgeEvent("ChainWhitelisted", (0,))])


def test_set_get_threshold():
    bridge = new_bridge()
    assert bridge.relayer_threshold == 1
    bridge.set_threshold(Origin.root(), TEST_THRESHOLD)
    assert bridge.relayer_threshold == TEST_THRESHOLD
    bridge.set_threshold(Origin.root(), 5)
    assert bridge.relayer_threshold == 5
    assert_events(bridge, [
        BridgeEvent("RelayerThresholdChanged", (TEST_THRESHOLD,)),
        BridgeEvent("RelayerThresholdChanged", (5,)),
    ])


def test_threshold_zero_rejected_and_admin_only():
    bridge = new_bridge()
    with pytest.raises(BridgeError) as err:
        bridge.set_threshold(Origin.root(), 0)
    assert err.value.kind is BridgeErrorKind.INVALID_THRESHOLD
    with pytest.raises(BadOrigin):
        bridge.set_threshold(Origin.signed(RELAYER_A), 3)
    assert bridge.relayer_threshold == 1
    assert bridge.events == []


def test_asset_transfer_success():
    bridge = new_bridge()
    dest_id = 2
    to = bytes([2])
    resource_id = bytes([1] * 32)
    metadata = b""
    amount = 100
    token_id = bytes([1, 2, 3, 4])

    bridge.set_resource(Origin.root(), resource_id, b"Erc20.transfer")
    bridge.set_threshold(Origin.root(), TEST_THRESHOLD)
    bridge.whitelist_chain(Origin.root(), dest_id)
    bridge.transfer_fungible(dest_id, resource_id, to, amount)
    assert_events(bridge, [
        BridgeEvent("ChainWhitelisted", (dest_id,)),
        BridgeEvent("FungibleTransfer", (dest_id, 1, resource_id, amount, to)),
    ])

    bridge.transfer_nonfungible(dest_id, resource_id, token_id, to, metadata)
    assert_events(bridge, [BridgeEvent(
        "NonFungibleTransfer", (dest_id, 2, resource_id, token_id, to, metadata))])

    bridge.transfer_generic(dest_id, resource_id, metadata)
    assert_events(bridge, [BridgeEvent("GenericTransfer", (dest_id, 3, resource_id, metadata))])
    assert bridge.chain_nonce(dest_id) == 3


def test_asset_transfer_invalid_resource_id():
    bridge = new_bridge()
    dest_id = 2
    resource_id = bytes([1] * 32)
    bridge.set_threshold(Origin.root(), TEST_THRESHOLD)
    bridge.whitelist_chain(Origin.root(), dest_id)
    before = bridge.events

    calls = [
        lambda: bridge.transfer_fungible(dest_id, resource_id, bytes([2]), 100),
        lambda: bridge.transfer_nonfungible(dest_id, resource_id, b"", b"", b""),
        lambda: bridge.transfer_generic(dest_id, resource_id, b""),
    ]
    for call in calls:
        with pytest.raises(BridgeError) as err:
            call()
        assert err.value.kind is BridgeErrorKind.RESOURCE_DOES_NOT_EXIST
    assert bridge.events == before
    assert bridge.chain_nonce(dest_id) == 0


def test_asset_transfer_invalid_chain():
    bridge = new_bridge()
    chain_id = 2
    bad_dest_id = 3
    resource_id = bytes([4] * 32)
    bridge.whitelist_chain(Origin.root(), chain_id)
    assert_events(bridge, [BridgeEvent("ChainWhitelisted", (chain_id,))])

    calls = [
        lambda: bridge.transfer_fungible(bad_dest_id, resource_id, b"", 0),
        lambda: bridge.transfer_nonfungible(bad_dest_id, resource_id, b"", b"", b""),
        lambda: bridge.transfer_generic(bad_dest_id, resource_id, b""),
    ]
    for call in calls:
        with pytest.raises(BridgeError) as err:
            call()
        assert err.value.kind is BridgeErrorKind.CHAIN_NOT_WHITELISTED
    assert bridge.chain_nonce(bad_dest_id) is None


def test_add_remove_relayer():
    bridge = new_bridge()
    bridge.set_threshold(Origin.root(), TEST_THRESHOLD)
    assert bridge.relayer_count == 0
    for relayer in (RELAYER_A, RELAYER_B, RELAYER_C):
        bridge.add_relayer(Origin.root(), relayer)
    assert bridge.relayer_count == 3

    with pytest.raises(BridgeError) as err:
        bridge.add_relayer(Origin.root(), RELAYER_A)
    assert err.value.kind is BridgeErrorKind.RELAYER_ALREADY_EXISTS

    bridge.remove_relayer(Origin.root(), RELAYER_B)
    assert bridge.relayer_count == 2
    with pytest.raises(BridgeError) as err:
        bridge.remove_relayer(Origin.root(), RELAYER_B)
    assert err.value.kind is BridgeErrorKind.RELAYER_INVALID
    assert bridge.relayer_count == 2

    assert_events(bridge, [
        BridgeEvent("RelayerAdded", (RELAYER_A,)),
        BridgeEvent("RelayerAdded", (RELAYER_B,)),
        BridgeEvent("RelayerAdded", (RELAYER_C,)),
        BridgeEvent("RelayerRemoved", (RELAYER_B,)),
    ])


def test_create_successful_proposal():
    src_id = 1
    r_id = derive_resource_id(src_id, b"remark")
    bridge = new_bridge_initialized(src_id, r_id, b"System.remark")
    prop_id = 1
    proposal = Remark(bytes([10]))

    bridge.acknowledge_proposal(Origin.signed(RELAYER_A), prop_id, src_id, r_id, proposal)
    assert bridge.votes(src_id, prop_id, proposal) == ProposalVotes(
        [RELAYER_A], [], ProposalStatus.INITIATED, PROPOSAL_LIFETIME + 1)

    bridge.reject_proposal(Origin.signed(RELAYER_B), prop_id, src_id, r_id, proposal)
    assert bridge.votes(src_id, prop_id, proposal) == ProposalVotes(
        [RELAYER_A], [RELAYER_B], ProposalStatus.INITIATED, PROPOSAL_LIFETIME + 1)

    bridge.acknowledge_proposal(Origin.signed(RELAYER_C), prop_id, src_id, r_id, proposal)
    assert bridge.votes(src_id, prop_id, proposal) == ProposalVotes(
        [RELAYER_A, RELAYER_C], [RELAYER_B], ProposalStatus.APPROVED, PROPOSAL_LIFETIME + 1)

    assert_events(bridge, [
        BridgeEvent("VoteFor", (src_id, prop_id, RELAYER_A)),
        BridgeEvent("VoteAgainst", (src_id, prop_id, RELAYER_B)),
        BridgeEvent("VoteFor", (src_id, prop_id, RELAYER_C)),
        BridgeEvent("ProposalApproved", (src_id, prop_id)),
        BridgeEvent("ProposalSucceeded", (src_id, prop_id)),
    ])


def test_create_unsuccessful_proposal():
    src_id = 1
    r_id = derive_resource_id(src_id, b"transfer")
    bridge = new_bridge_initialized(src_id, r_id, b"System.remark")
    prop_id = 1
    proposal = Remark(bytes([11]))

    bridge.acknowledge_proposal(Origin.signed(RELAYER_A), prop_id, src_id, r_id, proposal)
    bridge.reject_proposal(Origin.signed(RELAYER_B), prop_id, src_id, r_id, proposal)
    assert bridge.votes(src_id, prop_id, proposal) == ProposalVotes(
        [RELAYER_A], [RELAYER_B], ProposalStatus.INITIATED, PROPOSAL_LIFETIME + 1)

    bridge.reject_proposal(Origin.signed(RELAYER_C), prop_id, src_id, r_id, proposal)
    assert bridge.votes(src_id, prop_id, proposal) == ProposalVotes(
        [RELAYER_A], [RELAYER_B, RELAYER_C], ProposalStatus.REJECTED, PROPOSAL_LIFETIME + 1)

    assert_events(bridge, [
        BridgeEvent("VoteFor", (src_id, prop_id, RELAYER_A)),
        BridgeEvent("VoteAgainst", (src_id, prop_id, RELAYER_B)),
        BridgeEvent("VoteAgainst", (src_id, prop_id, RELAYER_C)),
        BridgeEvent("ProposalRejected", (src_id, prop_id)),
    ])


def test_execute_after_threshold_change():
    src_id = 1
    r_id = derive_resource_id(src_id, b"transfer")
    bridge = new_bridge_initialized(src_id, r_id, b"System.remark")
    prop_id = 1
    proposal = Remark(bytes([11]))

    bridge.acknowledge_proposal(Origin.signed(RELAYER_A), prop_id, src_id, r_id, proposal)
    assert bridge.votes(src_id, prop_id, proposal) == ProposalVotes(
        [RELAYER_A], [], ProposalStatus.INITIATED, PROPOSAL_LIFETIME + 1)

    bridge.set_threshold(Origin.root(), 1)
    bridge.eval_vote_state(Origin.signed(RELAYER_A), prop_id, src_id, proposal)
    assert bridge.votes(src_id, prop_id, proposal) == ProposalVotes(
        [RELAYER_A], [], ProposalStatus.APPROVED, PROPOSAL_LIFETIME + 1)

    assert_events(bridge, [
        BridgeEvent("VoteFor", (src_id, prop_id, RELAYER_A)),
        BridgeEvent("RelayerThresholdChanged", (1,)),
        BridgeEvent("ProposalApproved", (src_id, prop_id)),
        BridgeEvent("ProposalSucceeded", (src_id, prop_id)),
    ])


def test_proposal_expires():
    src_id = 1
    r_id = derive_resource_id(src_id, b"remark")
    bridge = new_bridge_initialized(src_id, r_id, b"System.remark")
    prop_id = 1
    proposal = Remark(bytes([10]))
    expected = ProposalVotes([RELAYER_A], [], ProposalStatus.INITIATED, PROPOSAL_LIFETIME + 1)

    bridge.acknowledge_proposal(Origin.signed(RELAYER_A), prop_id, src_id, r_id, proposal)
    assert bridge.votes(src_id, prop_id, proposal) == expected

    bridge.block_number = PROPOSAL_LIFETIME + 1

    with pytest.raises(BridgeError) as err:
        bridge.reject_proposal(Origin.signed(RELAYER_B), prop_id, src_id, r_id, proposal)
    assert err.value.kind is BridgeErrorKind.PROPOSAL_EXPIRED
    assert bridge.votes(src_id, prop_id, proposal) == expected

    with pytest.raises(BridgeError) as err:
        bridge.eval_vote_state(Origin.signed(RELAYER_C), prop_id, src_id, proposal)
    assert err.value.kind is BridgeErrorKind.PROPOSAL_EXPIRED
    assert bridge.votes(src_id, prop_id, proposal) == expected

    assert_events(bridge, [BridgeEvent("VoteFor", (src_id, prop_id, RELAYER_A))])


def test_relayer_checks_and_double_vote():
    src_id = 1
    r_id = derive_resource_id(src_id, b"remark")
    bridge = new_bridge_initialized(src_id, r_id, b"System.remark")
    proposal = Remark(b"x")

    with pytest.raises(BridgeError) as err:
        bridge.acknowledge_proposal(Origin.signed(99), 1, src_id, r_id, proposal)
    assert err.value.kind is BridgeErrorKind.MUST_BE_RELAYER

    bridge.acknowledge_proposal(Origin.signed(RELAYER_A), 1, src_id, r_id, proposal)
    with pytest.raises(BridgeError) as err:
        bridge.reject_proposal(Origin.signed(RELAYER_A), 1, src_id, r_id, proposal)
    assert err.value.kind is BridgeErrorKind.RELAYER_ALREADY_VOTED

    with pytest.raises(BridgeError) as err:
        bridge.eval_vote_state(Origin.signed(RELAYER_A), 2, src_id, proposal)
    assert err.value.kind is BridgeErrorKind.PROPOSAL_DOES_NOT_EXIST


def test_failed_dispatch_rolls_back():
    src_id = 1
    r_id = derive_resource_id(src_id, b"remark")
    bridge = new_bridge_initialized(src_id, r_id, b"System.remark")
    bridge.set_threshold(Origin.root(), 1)
    before = bridge.events
    proposal = Failing(1)

    with pytest.raises(RuntimeError):
        bridge.acknowledge_proposal(Origin.signed(RELAYER_A), 1, src_id, r_id, proposal)
    assert bridge.votes(src_id, 1, proposal) is None
    assert bridge.events == before


def test_proposal_dispatched_as_bridge_account():
    seen = []
    bridge = Bridge(TEST_CHAIN_ID, PROPOSAL_LIFETIME, block_number=1,
                    dispatch=lambda call, origin: seen.append((call, origin)))
    src_id = 1
    r_id = derive_resource_id(src_id, b"remark")
    bridge.add_relayer(Origin.root(), RELAYER_A)
    bridge.whitelist_chain(Origin.root(), src_id)
    bridge.set_resource(Origin.root(), r_id, b"System.remark")
    bridge.acknowledge_proposal(Origin.signed(RELAYER_A), 7, src_id, r_id, "call")
    assert seen == [("call", Origin.signed(bridge.account_id()))]
    assert bridge.account_id()[4:12] == b"cb/bridg"