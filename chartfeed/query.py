from __future__ import annotations

from typing import Any, Iterator, Mapping, Optional, Tuple


class Query:
    """Logical identity of a remote read: endpoint plus string params.

    Params keep their insertion order for URL building, while equality and
    hashing use the sorted param set.
    """

    __slots__ = ("_endpoint", "_params", "_key")

    def __init__(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> None:
        if not endpoint.startswith("/"):
            endpoint = "/" + endpoint
        items: Tuple[Tuple[str, str], ...] = tuple(
            (str(k), str(v)) for k, v in (params or {}).items() if v is not None
        )
        object.__setattr__(self, "_endpoint", endpoint)
        object.__setattr__(self, "_params", items)
        object.__setattr__(self, "_key", (endpoint, tuple(sorted(items))))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Query is immutable")

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def params(self) -> Tuple[Tuple[str, str], ...]:
        return self._params

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(self._params)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Query):
            return NotImplemented
        return self._key == other._key

    def __hash__(self) -> int:
        return hash(self._key)

    def __repr__(self) -> str:
        return f"Query({self._endpoint!r}, {dict(self._params)!r})"
