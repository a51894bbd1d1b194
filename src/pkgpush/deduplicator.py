from typing import Iterator, Set


class VersionDeduplicator:
    """Run-scoped set of processed-version identifiers.

    Entries are only ever added. Create a new instance for every run.
    """

    def __init__(self) -> None:
        self._seen: Set[str] = set()

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._seen

    def add(self, identifier: str) -> None:
        self._seen.add(identifier)

    def __len__(self) -> int:
        return len(self._seen)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._seen))
