"""Execution weights and the cost of the cluster calls."""

from __future__ import annotations

from dataclasses import dataclass

U64_MAX = 2**64 - 1


def _check_u64(value: int, name: str) -> None:
    if not 0 <= value <= U64_MAX:
        raise ValueError(f"{name} must fit in an unsigned 64-bit integer")


def _saturating(value: int) -> int:
    return min(value, U64_MAX)


@dataclass(frozen=True)
class Weight:
    """Computation time and proof size spent by a call."""

    ref_time: int = 0
    proof_size: int = 0

    def __post_init__(self) -> None:
        _check_u64(self.ref_time, "ref_time")
        _check_u64(self.proof_size, "proof_size")

    def saturating_add(self, other: "Weight") -> "Weight":
        return Weight(
            _saturating(self.ref_time + other.ref_time),
            _saturating(self.proof_size + other.proof_size),
        )


@dataclass(frozen=True)
class DbWeight:
    """Cost of a single storage read and write."""

    read: int
    write: int

    def reads(self, n: int) -> Weight:
        return Weight(_saturating(self.read * n))

    def writes(self, n: int) -> Weight:
        return Weight(_saturating(self.write * n))


ROCKS_DB_WEIGHT = DbWeight(read=25_000_000, write=100_000_000)


class ClusterWeights:
    """Benchmarked weights of the cluster management calls."""

    def __init__(self, db_weight: DbWeight = ROCKS_DB_WEIGHT) -> None:
        self.db_weight = db_weight

    def _weight(self, base: int, reads: int, writes: int) -> Weight:
        return (
            Weight(base)
            .saturating_add(self.db_weight.reads(reads))
            .saturating_add(self.db_weight.writes(writes))
        )

    def create_cluster(self) -> Weight:
        return self._weight(15_000_000, 1, 2)

    def add_node(self) -> Weight:
        return self._weight(599_000_000, 14, 5)

    def remove_node(self) -> Weight:
        return self._weight(24_000_000, 2, 2)

    def set_cluster_params(self) -> Weight:
        return self._weight(16_000_000, 1, 1)

    def set_cluster_gov_params(self) -> Weight:
        return self._weight(17_000_000, 1, 1)