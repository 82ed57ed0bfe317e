"""
Fingerprint-keyed candidate registry.
Holds at most one candidate per fingerprint; on collision the higher score
wins and ties keep the entry that arrived first. One registry per request.
"""

from typing import Callable, Dict, Generic, Iterator, List, Optional, TypeVar

T = TypeVar('T')


class CandidateRegistry(Generic[T]):

    def __init__(self, key: Callable[[T], str]):
        self._key = key
        self._entries: Dict[str, T] = {}

    def offer(self, candidate: T) -> bool:
        fingerprint = self._key(candidate)
        current = self._entries.get(fingerprint)
        if current is not None and current.score >= candidate.score:
            return False
        # replacing a key keeps its original insertion slot
        self._entries[fingerprint] = candidate
        return True

    def get(self, fingerprint: str) -> Optional[T]:
        return self._entries.get(fingerprint)

    def values(self) -> List[T]:
        return list(self._entries.values())

    def ranked(self, limit: Optional[int] = None) -> List[T]:
        ordered = sorted(self._entries.values(), key=lambda c: c.score, reverse=True)
        if limit is not None:
            ordered = ordered[:limit]
        return ordered

    def __contains__(self, fingerprint: str) -> bool:
        return fingerprint in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[T]:
        return iter(self._entries.values())
