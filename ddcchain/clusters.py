"""Cluster management: creating clusters, governing them and assigning nodes to them."""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any, Optional

from ddcchain.cluster import (
    Cluster,
    ClusterBondingParams,
    ClusterFeesParams,
    ClusterGovParams,
    ClusterParams,
    ClusterPricingParams,
    NodePubKey,
    NodeType,
)
from ddcchain.node_provider_auth import (
    AuthContractErrorKind,
    ContractRuntime,
    NodeProviderAuthContract,
    NodeProviderAuthContractError,
)
from ddcchain.origin import Origin


class ClusterErrorKind(enum.Enum):
    CLUSTER_ALREADY_EXISTS = "cluster already exists"
    CLUSTER_DOES_NOT_EXIST = "cluster does not exist"
    CLUSTER_PARAMS_EXCEEDS_LIMIT = "cluster params exceed the limit"
    ATTEMPT_TO_ADD_NON_EXISTENT_NODE = "attempt to add a node that does not exist"
    ATTEMPT_TO_ADD_ALREADY_ASSIGNED_NODE = "attempt to add a node already in a cluster"
    ATTEMPT_TO_REMOVE_NON_EXISTENT_NODE = "attempt to remove a node that does not exist"
    ATTEMPT_TO_REMOVE_NOT_ASSIGNED_NODE = "attempt to remove a node not in this cluster"
    ONLY_CLUSTER_MANAGER = "only the cluster manager may do this"
    NODE_IS_NOT_AUTHORIZED = "node is not authorized"
    NODE_HAS_NO_ACTIVATED_STAKE = "node has no activated stake"
    NODE_STAKE_IS_INVALID = "node stake is invalid"
    NODE_CHILLING_IS_PROHIBITED = "cluster candidate should not plan to chill"
    NODE_AUTH_CONTRACT_CALL_FAILED = "node auth contract call failed"
    NODE_AUTH_CONTRACT_DEPLOY_FAILED = "node auth contract deploy failed"
    NODE_AUTH_NODE_AUTHORIZATION_NOT_SUCCESSFUL = "node authorization not successful"


class ClusterError(Exception):
    """A cluster call was refused."""

    def __init__(self, kind: ClusterErrorKind) -> None:
        super().__init__(kind.value)
        self.kind = kind


class ClusterVisitorError(Exception):
    """A query about a cluster could not be answered."""

    CLUSTER_DOES_NOT_EXIST = "cluster does not exist"
    CLUSTER_GOV_PARAMS_NOT_SET = "cluster governance params are not set"

    def __init__(self, kind: str) -> None:
        super().__init__(kind)
        self.kind = kind


_AUTH_ERRORS = {
    AuthContractErrorKind.CONTRACT_CALL_FAILED: ClusterErrorKind.NODE_AUTH_CONTRACT_CALL_FAILED,
    AuthContractErrorKind.CONTRACT_DEPLOY_FAILED: ClusterErrorKind.NODE_AUTH_CONTRACT_DEPLOY_FAILED,
    AuthContractErrorKind.NODE_AUTHORIZATION_NOT_SUCCESSFUL: (
        ClusterErrorKind.NODE_AUTH_NODE_AUTHORIZATION_NOT_SUCCESSFUL
    ),
}


@dataclass(frozen=True)
class ClusterEvent:
    """Something the cluster module reported, e.g. ``ClusterEvent("ClusterCreated", id)``."""

    kind: str
    cluster_id: bytes
    node_pub_key: Optional[NodePubKey] = None


@dataclass
class _StoredNode:
    pub_key: NodePubKey
    provider_id: Any
    cluster_id: Optional[bytes] = None

    @property
    def node_type(self) -> NodeType:
        return self.pub_key.node_type


class NodeRepository:
    """In-memory registry of nodes and the cluster each one is assigned to."""

    def __init__(self) -> None:
        self._nodes: dict[NodePubKey, _StoredNode] = {}

    def create(self, node_pub_key: NodePubKey, provider_id: Any) -> None:
        if node_pub_key in self._nodes:
            raise ValueError("node already exists")
        self._nodes[node_pub_key] = _StoredNode(node_pub_key, provider_id)

    def get(self, node_pub_key: NodePubKey) -> _StoredNode:
        """Return a copy of the stored node; raise ``KeyError`` if there is none."""
        return replace(self._nodes[node_pub_key])

    def update(self, node: _StoredNode) -> None:
        if node.pub_key not in self._nodes:
            raise KeyError(node.pub_key)
        self._nodes[node.pub_key] = replace(node)


class StakingVisitor:
    """Answers questions about node stakes.

    This default answers the same for every node; implementations may raise
    :class:`ClusterError` when a stake is missing or in a bad state.
    """

    def __init__(self, activated_stake: bool = True, chilling_attempt: bool = False) -> None:
        self.activated_stake = activated_stake
        self.chilling_attempt = chilling_attempt

    def has_activated_stake(self, node_pub_key: NodePubKey, cluster_id: bytes) -> bool:
        return self.activated_stake

    def has_chilling_attempt(self, node_pub_key: NodePubKey) -> bool:
        return self.chilling_attempt


class DdcClusters:
    """Cluster state and calls. A call that raises leaves the state untouched."""

    def __init__(
        self,
        node_repository: Optional[NodeRepository] = None,
        staking_visitor: Optional[StakingVisitor] = None,
        contract_runtime: Optional[ContractRuntime] = None,
    ) -> None:
        self.node_repository = node_repository if node_repository is not None else NodeRepository()
        self.staking_visitor = staking_visitor if staking_visitor is not None else StakingVisitor()
        self.contract_runtime = contract_runtime
        self._clusters: dict[bytes, Cluster] = {}
        self._gov_params: dict[bytes, ClusterGovParams] = {}
        self._nodes: dict[tuple[bytes, NodePubKey], bool] = {}
        self._events: list[ClusterEvent] = []

    # Queries

    @property
    def events(self) -> list[ClusterEvent]:
        return list(self._events)

    def clusters(self, cluster_id: bytes) -> Optional[Cluster]:
        found = self._clusters.get(bytes(cluster_id))
        return None if found is None else replace(found)

    def clusters_gov_params(self, cluster_id: bytes) -> Optional[ClusterGovParams]:
        return self._gov_params.get(bytes(cluster_id))

    def _cluster_or_fail(self, cluster_id: bytes) -> Cluster:
        cluster = self._clusters.get(bytes(cluster_id))
        if cluster is None:
            raise ClusterError(ClusterErrorKind.CLUSTER_DOES_NOT_EXIST)
        return replace(cluster)

    def _managed_cluster(self, caller: Any, cluster_id: bytes) -> Cluster:
        cluster = self._cluster_or_fail(cluster_id)
        if cluster.manager_id != caller:
            raise ClusterError(ClusterErrorKind.ONLY_CLUSTER_MANAGER)
        return cluster

    # Calls

    def create_cluster(
        self,
        origin: Origin,
        cluster_id: bytes,
        cluster_manager_id: Any,
        cluster_reserve_id: Any,
        cluster_params: ClusterParams,
        cluster_gov_params: ClusterGovParams,
    ) -> None:
        """Create a cluster; governance (root) only."""
        origin.ensure_root()
        self._do_create_cluster(
            cluster_id, cluster_manager_id, cluster_reserve_id, cluster_params, cluster_gov_params
        )

    def add_node(self, origin: Origin, cluster_id: bytes, node_pub_key: NodePubKey) -> None:
        """Add a staked, authorized node to a cluster; the cluster manager only."""
        caller = origin.ensure_signed()
        cluster = self._managed_cluster(caller, cluster_id)
        cluster_id = cluster.cluster_id

        if not self.staking_visitor.has_activated_stake(node_pub_key, cluster_id):
            raise ClusterError(ClusterErrorKind.NODE_HAS_NO_ACTIVATED_STAKE)
        if self.staking_visitor.has_chilling_attempt(node_pub_key):
            raise ClusterError(ClusterErrorKind.NODE_CHILLING_IS_PROHIBITED)

        try:
            node = self.node_repository.get(node_pub_key)
        except KeyError:
            raise ClusterError(ClusterErrorKind.ATTEMPT_TO_ADD_NON_EXISTENT_NODE) from None

        address = cluster.props.node_provider_auth_contract
        if address is not None:
            if not self._is_authorized(address, caller, node):
                raise ClusterError(ClusterErrorKind.NODE_IS_NOT_AUTHORIZED)

        self._assign_node(cluster_id, node_pub_key)
        self._events.append(ClusterEvent("ClusterNodeAdded", cluster_id, node_pub_key))

    def _is_authorized(self, address: Any, caller: Any, node: _StoredNode) -> bool:
        if self.contract_runtime is None:
            raise ClusterError(ClusterErrorKind.NODE_AUTH_CONTRACT_CALL_FAILED)
        contract = NodeProviderAuthContract(address, caller, self.contract_runtime)
        try:
            return contract.is_authorized(node.provider_id, node.pub_key, node.node_type)
        except NodeProviderAuthContractError as exc:
            raise ClusterError(_AUTH_ERRORS[exc.kind]) from exc

    def remove_node(self, origin: Origin, cluster_id: bytes, node_pub_key: NodePubKey) -> None:
        """Remove a node from a cluster; the cluster manager only."""
        caller = origin.ensure_signed()
        cluster = self._managed_cluster(caller, cluster_id)
        cluster_id = cluster.cluster_id
        self._unassign_node(cluster_id, node_pub_key)
        self._events.append(ClusterEvent("ClusterNodeRemoved", cluster_id, node_pub_key))

    def set_cluster_params(
        self, origin: Origin, cluster_id: bytes, cluster_params: ClusterParams
    ) -> None:
        """Change the parameters a cluster manager may set without governance."""
        caller = origin.ensure_signed()
        cluster = self._managed_cluster(caller, cluster_id)
        cluster.set_params(cluster_params)
        self._clusters[cluster.cluster_id] = cluster
        self._events.append(ClusterEvent("ClusterParamsSet", cluster.cluster_id))

    def set_cluster_gov_params(
        self, origin: Origin, cluster_id: bytes, cluster_gov_params: ClusterGovParams
    ) -> None:
        """Change a cluster's governance parameters; root only."""
        origin.ensure_root()
        cluster = self._cluster_or_fail(cluster_id)
        self._gov_params[cluster.cluster_id] = cluster_gov_params
        self._events.append(ClusterEvent("ClusterGovParamsSet", cluster.cluster_id))

    def create_new_cluster(
        self,
        cluster_id: bytes,
        cluster_manager_id: Any,
        cluster_reserve_id: Any,
        cluster_params: ClusterParams,
        cluster_gov_params: ClusterGovParams,
    ) -> None:
        """Create a cluster on behalf of another module, without an origin check."""
        self._do_create_cluster(
            cluster_id, cluster_manager_id, cluster_reserve_id, cluster_params, cluster_gov_params
        )

    def _do_create_cluster(
        self,
        cluster_id: bytes,
        cluster_manager_id: Any,
        cluster_reserve_id: Any,
        cluster_params: ClusterParams,
        cluster_gov_params: ClusterGovParams,
    ) -> None:
        cluster = Cluster.create(cluster_id, cluster_manager_id, cluster_reserve_id, cluster_params)
        if cluster.cluster_id in self._clusters:
            raise ClusterError(ClusterErrorKind.CLUSTER_ALREADY_EXISTS)
        self._clusters[cluster.cluster_id] = cluster
        self._gov_params[cluster.cluster_id] = cluster_gov_params
        self._events.append(ClusterEvent("ClusterCreated", cluster.cluster_id))

    # Visitor queries

    def ensure_cluster(self, cluster_id: bytes) -> None:
        if bytes(cluster_id) not in self._clusters:
            raise ClusterVisitorError(ClusterVisitorError.CLUSTER_DOES_NOT_EXIST)

    def _gov_or_fail(self, cluster_id: bytes) -> ClusterGovParams:
        params = self._gov_params.get(bytes(cluster_id))
        if params is None:
            raise ClusterVisitorError(ClusterVisitorError.CLUSTER_GOV_PARAMS_NOT_SET)
        return params

    def get_bond_size(self, cluster_id: bytes, node_type: NodeType) -> int:
        params = self._gov_or_fail(cluster_id)
        NodeType(node_type)
        return params.storage_bond_size

    def get_pricing_params(self, cluster_id: bytes) -> ClusterPricingParams:
        return self._gov_or_fail(cluster_id).pricing()

    def get_fees_params(self, cluster_id: bytes) -> ClusterFeesParams:
        return self._gov_or_fail(cluster_id).fees()

    def get_reserve_account_id(self, cluster_id: bytes) -> Any:
        cluster = self._clusters.get(bytes(cluster_id))
        if cluster is None:
            raise ClusterVisitorError(ClusterVisitorError.CLUSTER_DOES_NOT_EXIST)
        return cluster.reserve_id

    def get_chill_delay(self, cluster_id: bytes, node_type: NodeType) -> int:
        params = self._gov_or_fail(cluster_id)
        NodeType(node_type)
        return params.storage_chill_delay

    def get_unbonding_delay(self, cluster_id: bytes, node_type: NodeType) -> int:
        params = self._gov_or_fail(cluster_id)
        NodeType(node_type)
        return params.storage_unbonding_delay

    def get_bonding_params(self, cluster_id: bytes) -> ClusterBondingParams:
        return self._gov_or_fail(cluster_id).bonding()

    # Node membership

    def contains_node(self, cluster_id: bytes, node_pub_key: NodePubKey) -> bool:
        return (bytes(cluster_id), node_pub_key) in self._nodes

    def _assign_node(self, cluster_id: bytes, node_pub_key: NodePubKey) -> None:
        try:
            node = self.node_repository.get(node_pub_key)
        except KeyError:
            raise ClusterError(ClusterErrorKind.ATTEMPT_TO_ADD_NON_EXISTENT_NODE) from None
        if node.cluster_id is not None:
            raise ClusterError(ClusterErrorKind.ATTEMPT_TO_ADD_ALREADY_ASSIGNED_NODE)
        node.cluster_id = cluster_id
        try:
            self.node_repository.update(node)
        except KeyError:
            raise ClusterError(ClusterErrorKind.ATTEMPT_TO_ADD_NON_EXISTENT_NODE) from None
        self._nodes[(cluster_id, node_pub_key)] = True

    def _unassign_node(self, cluster_id: bytes, node_pub_key: NodePubKey) -> None:
        try:
            node = self.node_repository.get(node_pub_key)
        except KeyError:
            raise ClusterError(ClusterErrorKind.ATTEMPT_TO_REMOVE_NON_EXISTENT_NODE) from None
        if node.cluster_id != cluster_id:
            raise ClusterError(ClusterErrorKind.ATTEMPT_TO_REMOVE_NOT_ASSIGNED_NODE)
        node.cluster_id = None
        try:
            self.node_repository.update(node)
        except KeyError:
            raise ClusterError(ClusterErrorKind.ATTEMPT_TO_REMOVE_NON_EXISTENT_NODE) from None
        self._nodes.pop((cluster_id, node_pub_key), None)