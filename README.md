# ddcchain

In-memory models of the on-chain logic behind a decentralised data cloud
network. The package covers a relayer-voted cross-chain bridge, cluster
management with governance parameters, the encoding of calls to a
node-provider authorisation contract, call weights, and chain-spec helpers.
It has no dependencies beyond the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `ddcchain.origin`: `Origin` stands for a call's caller. `Origin.root()` and
  `Origin.signed(who)` create one. `ensure_root()` and `ensure_signed()` raise
  `BadOrigin` when the caller is of the wrong kind. `ensure_signed()` returns
  the signer.
- `ddcchain.proposal`: `ProposalStatus` (`INITIATED`, `APPROVED`, `REJECTED`)
  and `ProposalVotes`, with `try_to_complete`, `is_complete`, `has_voted` and
  `is_expired`. It also has `derive_resource_id(chain, id)`, which builds a
  32-byte resource ID from up to 31 bytes of `id`, left-padded with zeros and
  followed by the chain byte.
- `ddcchain.chainbridge`: `Bridge(chain_id, proposal_lifetime, block_number=0, dispatch=None)`
  holds the bridge state:
  - The admin calls take a root origin: `set_threshold`, `set_resource`,
    `remove_resource`, `whitelist_chain`, `add_relayer` and `remove_relayer`.
  - The relayer calls are `acknowledge_proposal`, `reject_proposal` and
    `eval_vote_state`.
  - The outbound transfers are `transfer_fungible`, `transfer_nonfungible` and
    `transfer_generic`.
  - The queries are `votes(src_id, nonce, prop)`, `is_relayer`,
    `resource_exists`, `chain_whitelisted`, `account_id`, `events`,
    `relayer_threshold` and `relayer_count`.

  Each call is transactional. A refused call raises `BridgeError`, and its
  `kind` is a `BridgeErrorKind`. Events are `BridgeEvent(kind, data)`.
  Proposals must be hashable. When a proposal is approved, the bridge
  dispatches it with a signed origin of the bridge account. By default that
  means calling `prop(origin)`; a `dispatch` callable passed to the
  constructor replaces this.
- `ddcchain.cluster`: `Cluster`, `ClusterProps`, `ClusterParams` and
  `ClusterGovParams`. `ClusterGovParams` offers the views `pricing()`, `fees()`
  and `bonding()`, which return `ClusterPricingParams`, `ClusterFeesParams`
  and `ClusterBondingParams`. The module also has `NodeType` and
  `NodePubKey`, a 32-byte key whose `encode()` prepends the variant byte.
- `ddcchain.node_provider_auth`: `encode_compact` is the compact integer
  encoding. `encode_constructor`, `encode_is_authorized_call` and
  `encode_authorize_node_call` build contract call data.
  `NodeProviderAuthContract` sends calls through a `ContractRuntime` that you
  supply, meaning any object with
  `bare_call(caller_id, contract_id, gas_limit, data) -> bytes`. Failures raise
  `NodeProviderAuthContractError`.
- `ddcchain.clusters`: `DdcClusters` works with a `NodeRepository`, a
  `StakingVisitor` and an optional contract runtime:
  - `create_cluster` and `set_cluster_gov_params` take a root origin.
  - `add_node`, `remove_node` and `set_cluster_params` may only be called by
    the cluster manager.
  - `create_new_cluster` does no origin check.
  - The queries are `ensure_cluster`, `get_bond_size`, `get_pricing_params`,
    `get_fees_params`, `get_reserve_account_id`, `get_chill_delay`,
    `get_unbonding_delay`, `get_bonding_params` and `contains_node`.

  Refused calls raise `ClusterError`, and its `kind` is a `ClusterErrorKind`.
  Failed queries raise `ClusterVisitorError`. Events are `ClusterEvent`s.
- `ddcchain.weights`: `Weight` supports saturating addition, and `DbWeight`
  gives per-read and per-write costs. `ClusterWeights` gives the weight of
  each cluster call; by default it uses `ROCKS_DB_WEIGHT`.
- `ddcchain.variant`: `is_cere(chain_id)` and `is_cere_dev(chain_id)` classify
  a chain id by its prefix.
- `ddcchain.chain_spec`: `chain_spec_properties()` returns the token decimals,
  the symbol and the SS58 format of a development chain spec.

## Example

```python
from ddcchain.chainbridge import Bridge
from ddcchain.origin import Origin
from ddcchain.proposal import derive_resource_id


def remark(origin):
    print("executed by", origin.signer)


bridge = Bridge(chain_id=5, proposal_lifetime=50)
root = Origin.root()
bridge.set_threshold(root, 2)
bridge.add_relayer(root, 2)
bridge.add_relayer(root, 3)
bridge.whitelist_chain(root, 1)

r_id = derive_resource_id(1, b"remark")
bridge.set_resource(root, r_id, b"System.remark")

bridge.acknowledge_proposal(Origin.signed(2), 1, 1, r_id, remark)
bridge.acknowledge_proposal(Origin.signed(3), 1, 1, r_id, remark)
print(bridge.votes(1, 1, remark).status)  # ProposalStatus.APPROVED
```

## What this package does not do

Everything is held in memory, and the package has no storage. It does not run
a node and has no networking, consensus or RPC. It has no command-line
program. Smart contracts are never executed. Contract calls go through
whatever `ContractRuntime` you pass in, and without one, a cluster that names
an authorisation contract refuses `add_node` with
`NODE_AUTH_CONTRACT_CALL_FAILED`. Account balances and staking are not
modelled; `StakingVisitor` answers stake questions with fixed values.