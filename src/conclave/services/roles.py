"""Participant role hierarchy."""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Participant roles in strict privilege order.

    ``rank`` is the ordinal used for every comparison; declaration order is
    not relied upon.
    """

    READONLY = "readonly"
    MEMBER = "member"
    ADMIN = "admin"
    OWNER = "owner"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def at_least(self, required: Role) -> bool:
        """Return True if this role grants everything ``required`` grants."""
        return self.rank >= required.rank

    def outranks(self, other: Role) -> bool:
        return self.rank > other.rank

    @classmethod
    def parse(cls, value: str | Role) -> Role:
        """Return the role named by ``value``.

        Raises:
            ValueError: If ``value`` is not a known role.
        """
        if isinstance(value, Role):
            return value
        try:
            return cls(value)
        except ValueError as err:
            allowed = ", ".join(role.value for role in cls)
            raise ValueError(f"Invalid role {value!r}; expected one of: {allowed}") from err


_RANKS: dict[Role, int] = {
    Role.READONLY: 0,
    Role.MEMBER: 1,
    Role.ADMIN: 2,
    Role.OWNER: 3,
}


def has_role(actual: str | Role, required: str | Role) -> bool:
    """Return True if ``actual`` ranks at or above ``required``."""
    return Role.parse(actual).at_least(Role.parse(required))
