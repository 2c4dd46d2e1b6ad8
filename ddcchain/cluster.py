"""Clusters, storage node keys and the parameters clusters are governed by."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional

CLUSTER_ID_LEN = 20
NODE_KEY_LEN = 32
MAX_CLUSTER_PARAMS_LEN = 2048


def _fixed_bytes(value: bytes, length: int, name: str) -> bytes:
    value = bytes(value)
    if len(value) != length:
        raise ValueError(f"{name} must be {length} bytes long, got {len(value)}")
    return value


class NodeType(enum.IntEnum):
    STORAGE = 1


_KEY_VARIANT = {NodeType.STORAGE: 0}


@dataclass(frozen=True)
class NodePubKey:
    """The public key a node is known by, tagged with the kind of node."""

    key: bytes
    node_type: NodeType = NodeType.STORAGE

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", _fixed_bytes(self.key, NODE_KEY_LEN, "node key"))
        object.__setattr__(self, "node_type", NodeType(self.node_type))

    @classmethod
    def storage(cls, key: bytes) -> "NodePubKey":
        return cls(key, NodeType.STORAGE)

    def encode(self) -> bytes:
        """The encoded key: a variant index byte followed by the raw key."""
        return bytes([_KEY_VARIANT[self.node_type]]) + self.key


@dataclass(frozen=True)
class ClusterParams:
    node_provider_auth_contract: Optional[Any] = None


@dataclass(frozen=True)
class ClusterPricingParams:
    unit_per_mb_stored: int
    unit_per_mb_streamed: int
    unit_per_put_request: int
    unit_per_get_request: int


@dataclass(frozen=True)
class ClusterFeesParams:
    treasury_share: float
    validators_share: float
    cluster_reserve_share: float


@dataclass(frozen=True)
class ClusterBondingParams:
    storage_bond_size: int
    storage_chill_delay: int
    storage_unbonding_delay: int


@dataclass(frozen=True)
class ClusterGovParams:
    """Parameters of a cluster that only governance may change."""

    treasury_share: float
    validators_share: float
    cluster_reserve_share: float
    storage_bond_size: int
    storage_chill_delay: int
    storage_unbonding_delay: int
    unit_per_mb_stored: int
    unit_per_mb_streamed: int
    unit_per_put_request: int
    unit_per_get_request: int

    def pricing(self) -> ClusterPricingParams:
        return ClusterPricingParams(
            unit_per_mb_stored=self.unit_per_mb_stored,
            unit_per_mb_streamed=self.unit_per_mb_streamed,
            unit_per_put_request=self.unit_per_put_request,
            unit_per_get_request=self.unit_per_get_request,
        )

    def fees(self) -> ClusterFeesParams:
        return ClusterFeesParams(
            treasury_share=self.treasury_share,
            validators_share=self.validators_share,
            cluster_reserve_share=self.cluster_reserve_share,
        )

    def bonding(self) -> ClusterBondingParams:
        return ClusterBondingParams(
            storage_bond_size=self.storage_bond_size,
            storage_chill_delay=self.storage_chill_delay,
            storage_unbonding_delay=self.storage_unbonding_delay,
        )


@dataclass(frozen=True)
class ClusterProps:
    node_provider_auth_contract: Optional[Any] = None


@dataclass
class Cluster:
    """A cluster, its manager and reserve accounts and its manager-set properties."""

    cluster_id: bytes
    manager_id: Any
    reserve_id: Any
    props: ClusterProps

    def __post_init__(self) -> None:
        self.cluster_id = _fixed_bytes(self.cluster_id, CLUSTER_ID_LEN, "cluster id")

    @classmethod
    def create(
        cls,
        cluster_id: bytes,
        manager_id: Any,
        reserve_id: Any,
        cluster_params: ClusterParams,
    ) -> "Cluster":
        return cls(
            cluster_id,
            manager_id,
            reserve_id,
            ClusterProps(cluster_params.node_provider_auth_contract),
        )

    def set_params(self, cluster_params: ClusterParams) -> None:
        self.props = ClusterProps(cluster_params.node_provider_auth_contract)