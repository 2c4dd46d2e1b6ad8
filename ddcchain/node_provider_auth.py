"""Calls to the smart contract that decides which node providers may join a cluster."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Protocol

from ddcchain.cluster import NodePubKey, NodeType
from ddcchain.weights import U64_MAX, Weight

INK_SELECTOR_IS_AUTHORIZED = bytes([0x96, 0xB0, 0x45, 0x3E])
CTOR_SELECTOR = bytes.fromhex("9bae9d5e")
ADD_DDC_NODE_SELECTOR = bytes.fromhex("7a04093d")

EXTENSION_CALL_GAS_LIMIT = Weight(5_000_000_000_000, U64_MAX)

_CTOR_ARG_COUNT = 9
_U128_LEN = 16
_COMPACT_MAX = 2**536 - 1


def encode_compact(value: int) -> bytes:
    """Compact (variable length) encoding of a non-negative integer."""
    if not 0 <= value <= _COMPACT_MAX:
        raise ValueError("value out of range for compact encoding")
    if value < 1 << 6:
        return bytes([value << 2])
    if value < 1 << 14:
        return ((value << 2) | 0b01).to_bytes(2, "little")
    if value < 1 << 30:
        return ((value << 2) | 0b10).to_bytes(4, "little")
    length = max(4, (value.bit_length() + 7) // 8)
    return bytes([((length - 4) << 2) | 0b11]) + value.to_bytes(length, "little")


def _encode_bytes(data: bytes) -> bytes:
    return encode_compact(len(data)) + bytes(data)


def _node_key_body(node_pub_key: NodePubKey) -> bytes:
    # the contract takes the key without its variant index byte
    return node_pub_key.encode()[1:]


def encode_constructor() -> bytes:
    """Call data for the contract constructor: its selector and nine zero u128 arguments."""
    return CTOR_SELECTOR + bytes(_U128_LEN) * _CTOR_ARG_COUNT


def encode_is_authorized_call(
    node_provider_id: bytes, node_pub_key: NodePubKey, node_type: NodeType
) -> bytes:
    """Call data for ``is_authorized(node_provider, node, node_variant) -> bool``."""
    return (
        INK_SELECTOR_IS_AUTHORIZED
        + bytes(node_provider_id)
        + _encode_bytes(_node_key_body(node_pub_key))
        + bytes([int(node_type)])
    )


def encode_authorize_node_call(node_pub_key: NodePubKey) -> bytes:
    """Call data for ``add_ddc_node(node)``."""
    return ADD_DDC_NODE_SELECTOR + _encode_bytes(_node_key_body(node_pub_key))


class ContractCallFailure(Exception):
    """Raised by a contract runtime when a contract call cannot complete."""


class ContractRuntime(Protocol):
    def bare_call(
        self, caller_id: Any, contract_id: Any, gas_limit: Weight, data: bytes
    ) -> bytes:
        """Run a contract message and return its output data."""


class AuthContractErrorKind(enum.Enum):
    CONTRACT_CALL_FAILED = "contract call failed"
    CONTRACT_DEPLOY_FAILED = "contract deploy failed"
    NODE_AUTHORIZATION_NOT_SUCCESSFUL = "node authorization not successful"


class NodeProviderAuthContractError(Exception):
    """A call to the authorization contract failed."""

    def __init__(self, kind: AuthContractErrorKind) -> None:
        super().__init__(kind.value)
        self.kind = kind


@dataclass
class NodeProviderAuthContract:
    """A deployed authorization contract, called on behalf of ``caller_id``."""

    contract_id: Any
    caller_id: Any
    runtime: ContractRuntime

    def _call(self, data: bytes) -> bytes:
        return self.runtime.bare_call(
            self.caller_id, self.contract_id, EXTENSION_CALL_GAS_LIMIT, data
        )

    def is_authorized(
        self, node_provider_id: bytes, node_pub_key: NodePubKey, node_type: NodeType
    ) -> bool:
        """Ask the contract whether the provider may add this node."""
        data = encode_is_authorized_call(node_provider_id, node_pub_key, node_type)
        try:
            output = self._call(data)
        except ContractCallFailure as exc:
            raise NodeProviderAuthContractError(
                AuthContractErrorKind.CONTRACT_CALL_FAILED
            ) from exc
        return bool(output) and output[0] == 1

    def authorize_node(self, node_pub_key: NodePubKey) -> bool:
        """Add the node to the contract's list of authorized nodes."""
        try:
            self._call(encode_authorize_node_call(node_pub_key))
        except ContractCallFailure as exc:
            raise NodeProviderAuthContractError(
                AuthContractErrorKind.NODE_AUTHORIZATION_NOT_SUCCESSFUL
            ) from exc
        return True