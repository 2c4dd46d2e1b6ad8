"""Tell which network a chain specification targets from its chain id."""

from __future__ import annotations

_CERE_PREFIXES = ("cere_mainnet", "cere_qanet", "cere_testnet")
_CERE_DEV_PREFIX = "cere_dev"


def _require_str(chain_id: str) -> str:
    if not isinstance(chain_id, str):
        raise TypeError(f"chain id must be a string, got {type(chain_id).__name__}")
    return chain_id


def is_cere(chain_id: str) -> bool:
    """True if the chain id names the mainnet, QA net or testnet."""
    return _require_str(chain_id).startswith(_CERE_PREFIXES)


def is_cere_dev(chain_id: str) -> bool:
    """True if the chain id names a development network.

    A custom spec meant for the development runtime needs an id that starts
    with ``cere_dev`` to be recognised here.
    """
    return _require_str(chain_id).startswith(_CERE_DEV_PREFIX)