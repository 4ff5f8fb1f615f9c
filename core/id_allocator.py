# core/id_allocator.py
"""Allocate node and resource identifiers for one conversion run.

Node ids and resource ids share the string type but live in disjoint namespaces,
told apart by prefix (`n-` and `r-`). Uniqueness is scoped to one allocator, which
is scoped to one graph; there is no persistence across runs.
"""

from __future__ import annotations

import random
from enum import Enum

from core.exceptions import BuilderInvariantError

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
_SUFFIX_LENGTH = 6
_MAX_ATTEMPTS = 64


class IdNamespace(str, Enum):
    NODE = "n-"
    RESOURCE = "r-"

    @property
    def prefix(self) -> str:
        return self.value


class IdAllocator:
    """Hand out collision-free `n-xxxxxx` / `r-xxxxxx` identifiers.

    Args:
        seed: When given, ids are drawn from a seeded PRNG so the same input
            converted with the same seed yields byte-identical output.
    """

    def __init__(self, seed: int | None = None):
        self._rng: random.Random = random.Random(seed) if seed is not None else random.SystemRandom()
        self._issued: set[str] = set()

    def next_id(self, namespace: IdNamespace) -> str:
        for _ in range(_MAX_ATTEMPTS):
            suffix = "".join(self._rng.choice(_ALPHABET) for _ in range(_SUFFIX_LENGTH))
            candidate = f"{namespace.prefix}{suffix}"
            if candidate not in self._issued:
                self._issued.add(candidate)
                return candidate
        raise BuilderInvariantError(
            "Identifier space exhausted",
            details={"namespace": namespace.name, "issued": len(self._issued)},
        )

    @staticmethod
    def namespace_of(identifier: str) -> IdNamespace | None:
        if not isinstance(identifier, str):
            return None
        for namespace in IdNamespace:
            if identifier.startswith(namespace.prefix) and len(identifier) > len(namespace.prefix):
                return namespace
        return None
