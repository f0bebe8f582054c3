from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable

from ..errors import AuthorizationError


@dataclass(frozen=True)
class AccessScope:
    """
    The set of bases a caller may act on.

    Either unrestricted (admin) or an explicit, possibly empty, set of base
    ids. An empty scope fails closed: every base check is denied.
    """

    unrestricted: bool = False
    base_ids: FrozenSet[int] = frozenset()

    @classmethod
    def all_bases(cls) -> "AccessScope":
        return cls(unrestricted=True)

    @classmethod
    def of(cls, base_ids: Iterable[int]) -> "AccessScope":
        return cls(unrestricted=False, base_ids=frozenset(int(b) for b in base_ids))

    @classmethod
    def empty(cls) -> "AccessScope":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.unrestricted and not self.base_ids

    def allows(self, base_id: int | None) -> bool:
        if self.unrestricted:
            return True
        return base_id is not None and base_id in self.base_ids

    def require(self, base_id: int | None) -> None:
        """Raise AuthorizationError unless base_id is in scope. Never filters silently."""
        if not self.allows(base_id):
            raise AuthorizationError(
                "Base is outside your access scope",
                detail={"base_id": base_id},
            )

    def to_dict(self) -> dict:
        return {
            "unrestricted": self.unrestricted,
            "base_ids": sorted(self.base_ids),
        }
