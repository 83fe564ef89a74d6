"""
Deterministic lead routing.

A routing key (email, phone, domain...) is hashed with djb2/XOR over its
UTF-16 code units and mapped onto an ordered list of owner ids. The same key
and list always give the same owner, across restarts and across the other
implementations of this hash.
"""

from dataclasses import dataclass
from typing import Any, Sequence

from piperun_gateway.services.piperun.base import InvalidParameterError


_MASK_32 = 0xFFFFFFFF


def _utf16_code_units(text: str) -> list[int]:
    raw = text.encode("utf-16-le", "surrogatepass")
    return [int.from_bytes(raw[i:i + 2], "little") for i in range(0, len(raw), 2)]


def stable_hash(text: str) -> int:
    """djb2 with XOR: h = (h * 33) ^ code_unit, starting at 5381, kept to 32 bits."""
    h = 5381
    for unit in _utf16_code_units(text):
        h = ((h * 33) ^ unit) & _MASK_32
    return h


def coerce_owner_ids(values: Any) -> list[int]:
    """Keep the integer-like entries of a candidate owner list, in order."""
    if not isinstance(values, (list, tuple)):
        return []

    owners = []
    for value in values:
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            owners.append(value)
        elif isinstance(value, float) and value.is_integer():
            owners.append(int(value))
        elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
            owners.append(int(value.strip()))
    return owners


@dataclass
class RouteResult:
    """Owner picked for a routing key."""
    key: str
    owner_id: int
    index: int
    candidates_owner_ids: list[int]

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "owner_id": self.owner_id,
            "index": self.index,
            "candidates_owner_ids": self.candidates_owner_ids,
        }


def route(key: str | None, candidates: Sequence[int]) -> RouteResult:
    """
    Map a routing key onto one of the candidate owners.

    Raises:
        InvalidParameterError: If the key is empty or there are no candidates
    """
    key = (key or "").strip()
    if not key:
        raise InvalidParameterError("'key' (string) is required.")
    if not candidates:
        raise InvalidParameterError(
            "'candidates_owner_ids' must contain at least one valid owner id."
        )

    owners = list(candidates)
    index = stable_hash(key) % len(owners)
    return RouteResult(
        key=key,
        owner_id=owners[index],
        index=index,
        candidates_owner_ids=owners,
    )
