"""In-memory imposter store for the admin API.

Imposters are opaque JSON objects. The store only keeps them in order
and shapes exports; it never binds imposter ports or matches requests.
"""

from __future__ import annotations

__all__ = [
    "ImposterStore",
    "InvalidImposterError",
    "export_imposter",
    "remove_proxies",
]

import copy
from typing import Any

# Fields that describe runtime state and are left out of replayable exports
RUNTIME_FIELDS = ("requests", "numberOfRequests", "_links")


class InvalidImposterError(ValueError):
    """Raised when submitted imposters are not JSON objects."""


def remove_proxies(imposter: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of imposter without proxy responses.

    Stubs left without responses are dropped.
    """
    result = copy.deepcopy(imposter)
    stubs = []
    for stub in result.get("stubs", []):
        responses = [r for r in stub.get("responses", []) if not (isinstance(r, dict) and "proxy" in r)]
        if responses:
            stub["responses"] = responses
            stubs.append(stub)
    if "stubs" in result:
        result["stubs"] = stubs
    return result


def export_imposter(
    imposter: dict[str, Any],
    *,
    index: int,
    base_url: str,
    replayable: bool = False,
    without_proxies: bool = False,
) -> dict[str, Any]:
    """Shape one stored imposter for a GET response.

    Args:
        imposter: Stored imposter.
        index: Position in the store, used in the self link when there is no port.
        base_url: Admin API base URL for links.
        replayable: Leave out runtime fields so the result can be loaded back.
        without_proxies: Strip proxy responses.
    """
    result = remove_proxies(imposter) if without_proxies else copy.deepcopy(imposter)
    if replayable:
        for field in RUNTIME_FIELDS:
            result.pop(field, None)
    else:
        key = imposter.get("port", index)
        result["_links"] = {"self": {"href": f"{base_url}/imposters/{key}"}}
    return result


class ImposterStore:
    """Ordered list of imposters held by a running server."""

    def __init__(self) -> None:
        self._imposters: list[dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self._imposters)

    @staticmethod
    def _validate(imposters: Any) -> list[dict[str, Any]]:
        if not isinstance(imposters, list):
            raise InvalidImposterError("'imposters' must be a list")
        for position, imposter in enumerate(imposters):
            if not isinstance(imposter, dict):
                raise InvalidImposterError(f"imposter {position} must be an object")
        return copy.deepcopy(imposters)

    def all(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._imposters)

    def replace(self, imposters: Any) -> list[dict[str, Any]]:
        """Replace every imposter.

        Raises:
            InvalidImposterError: If imposters is not a list of objects.
        """
        self._imposters = self._validate(imposters)
        return self.all()

    def add(self, imposter: Any) -> dict[str, Any]:
        """Append one imposter.

        Raises:
            InvalidImposterError: If imposter is not an object.
        """
        (validated,) = self._validate([imposter])
        self._imposters.append(validated)
        return copy.deepcopy(validated)

    def clear(self) -> list[dict[str, Any]]:
        """Remove every imposter, returning what was removed."""
        removed, self._imposters = self._imposters, []
        return removed
