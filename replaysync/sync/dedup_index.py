"""Snapshot of fingerprints already recorded remotely."""

from typing import FrozenSet, Iterable


class DedupIndex:
    """
    Immutable set of known fingerprints, built once per run from the metadata
    store. Files uploaded during the run are not added, so two new files with
    the same content are both treated as new.
    """

    def __init__(self, fingerprints: Iterable[str]) -> None:
        self._known: FrozenSet[str] = frozenset(fp.lower() for fp in fingerprints if fp)

    def contains(self, fingerprint: str) -> bool:
        return fingerprint.lower() in self._known

    def __contains__(self, fingerprint: object) -> bool:
        return isinstance(fingerprint, str) and self.contains(fingerprint)

    def __len__(self) -> int:
        return len(self._known)
