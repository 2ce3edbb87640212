"""Pydantic models for read-only registry snapshots."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class EntryReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    position: int
    expected: Optional[int] = None
    consumed: int
    uses_default: bool = False

    @property
    def bounded(self) -> bool:
        return self.expected is not None


class ChainReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    target: str
    name: str
    arity: int
    entries: List[EntryReport]

    @property
    def label(self) -> str:
        return f"{self.target}.{self.name}/{self.arity}"

    @property
    def total_consumed(self) -> int:
        return sum(e.consumed for e in self.entries)


class OwnerSnapshot(BaseModel):
    """Counts for every binding chain registered under one owner."""

    model_config = ConfigDict(frozen=True)

    owner: str
    chains: List[ChainReport]

    def chain(self, target: str, name: str) -> Optional[ChainReport]:
        for chain in self.chains:
            if chain.target == target and chain.name == name:
                return chain
        return None


__all__ = ["EntryReport", "ChainReport", "OwnerSnapshot"]
