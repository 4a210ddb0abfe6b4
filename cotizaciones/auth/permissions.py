from __future__ import annotations

from typing import FrozenSet, Iterable, Mapping

ALL_METHODS: FrozenSet[str] = frozenset({"GET", "POST", "PUT", "DELETE"})

ROLE_METHODS: Mapping[str, FrozenSet[str]] = {
    "admin": ALL_METHODS,
    "editor": ALL_METHODS,
    "viewer": frozenset({"GET"}),
}

KNOWN_ROLES: FrozenSet[str] = frozenset(ROLE_METHODS)


def allowed_methods(roles: Iterable[str]) -> FrozenSet[str]:
    """Union of the methods granted to each role. Unknown roles grant nothing."""
    allowed: set[str] = set()
    for role in roles:
        allowed |= ROLE_METHODS.get(role, frozenset())
    return frozenset(allowed)
