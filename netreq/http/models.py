from dataclasses import dataclass, field
from typing import Dict, Generic, Iterable, List, Tuple, TypeVar

T = TypeVar("T")


def fold_headers(raw_headers: Iterable[Tuple[bytes, bytes]]) -> Tuple[Dict[str, str], List[Tuple[str, str]]]:
    """Return ``(headers, pairs)`` from raw header bytes.

    ``headers`` has lower-cased names with the last occurrence winning,
    ``pairs`` keeps every header in wire order with its original case.
    """
    headers: Dict[str, str] = {}
    pairs: List[Tuple[str, str]] = []
    for raw_name, raw_value in raw_headers:
        name = raw_name.decode("utf-8", "surrogateescape")
        value = raw_value.decode("utf-8", "surrogateescape")
        pairs.append((name, value))
        headers[name.lower()] = value
    return headers, pairs


@dataclass
class Response(Generic[T]):
    data: T
    status: int
    status_text: str
    headers: Dict[str, str]
    url: str
    raw_headers: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header_values(self, name: str) -> List[str]:
        key = name.lower()
        return [v for n, v in self.raw_headers if n.lower() == key]
