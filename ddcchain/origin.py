"""Call origins and the checks that dispatchable calls run against them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class BadOrigin(Exception):
    """Raised when a call comes from an origin it does not accept."""


@dataclass(frozen=True)
class Origin:
    """Who a call was dispatched by: the root authority or a signing account."""

    signer: Any = None
    is_root: bool = False

    @classmethod
    def root(cls) -> "Origin":
        """The privileged root origin."""
        return cls(is_root=True)

    @classmethod
    def signed(cls, who: Any) -> "Origin":
        """An origin signed by the account ``who``."""
        if who is None:
            raise ValueError("a signed origin needs an account")
        return cls(signer=who)

    @property
    def is_signed(self) -> bool:
        return not self.is_root and self.signer is not None

    def ensure_root(self) -> None:
        """Raise :class:`BadOrigin` unless this is the root origin."""
        if not self.is_root:
            raise BadOrigin("root origin required")

    def ensure_signed(self) -> Any:
        """Return the signing account, or raise :class:`BadOrigin`."""
        if not self.is_signed:
            raise BadOrigin("signed origin required")
        return self.signer