"""
Data structures shared by the parser, the diff engine and the export layer.

Records are plain insertion-ordered dicts so that column order survives for
display while values stay addressable by column name. Diff entries are a
small family of frozen dataclasses, one per classification.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union

Record = Dict[str, str]


class DiffKind(Enum):
    ADDED = 'added'
    REMOVED = 'removed'
    CHANGED = 'changed'
    UNCHANGED = 'unchanged'


@dataclass(frozen=True)
class ParsedDataset:
    """One parsed file: headers in file order plus the surviving data rows."""
    headers: List[str]
    rows: List[Record]
    delimiter: str
    delimiter_label: str

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.headers)


@dataclass(frozen=True)
class FieldChange:
    old: str
    new: str

    def to_dict(self) -> Dict[str, str]:
        return {'old': self.old, 'new': self.new}


@dataclass(frozen=True)
class Added:
    key: str
    record: Record
    kind: DiffKind = field(default=DiffKind.ADDED, init=False)

    def to_dict(self) -> Dict:
        return {'type': self.kind.value, 'key': self.key, 'data': dict(self.record)}


@dataclass(frozen=True)
class Removed:
    key: str
    record: Record
    kind: DiffKind = field(default=DiffKind.REMOVED, init=False)

    def to_dict(self) -> Dict:
        return {'type': self.kind.value, 'key': self.key, 'data': dict(self.record)}


@dataclass(frozen=True)
class Changed:
    key: str
    record1: Record
    record2: Record
    differences: Dict[str, FieldChange]
    kind: DiffKind = field(default=DiffKind.CHANGED, init=False)

    def to_dict(self) -> Dict:
        return {
            'type': self.kind.value,
            'key': self.key,
            'data1': dict(self.record1),
            'data2': dict(self.record2),
            'differences': {col: change.to_dict() for col, change in self.differences.items()},
        }


@dataclass(frozen=True)
class Unchanged:
    key: str
    record: Record
    kind: DiffKind = field(default=DiffKind.UNCHANGED, init=False)

    def to_dict(self) -> Dict:
        return {'type': self.kind.value, 'key': self.key, 'data': dict(self.record)}


DiffEntry = Union[Added, Removed, Changed, Unchanged]


@dataclass(frozen=True)
class DuplicateKey:
    """A key that occurred more than once in a single dataset."""
    dataset: int
    key: str
    count: int

    def to_dict(self) -> Dict:
        return {'dataset': self.dataset, 'key': self.key, 'count': self.count}


@dataclass
class ComparisonResult:
    """
    Outcome of one keyed comparison.

    The four entry lists keep key encounter order. ``stats`` is always
    derived from them and from the raw dataset row counts.
    """
    key_column: str
    total1: int
    total2: int
    added: List[Added] = field(default_factory=list)
    removed: List[Removed] = field(default_factory=list)
    changed: List[Changed] = field(default_factory=list)
    unchanged: List[Unchanged] = field(default_factory=list)
    duplicate_keys: List[DuplicateKey] = field(default_factory=list)
    blank_keys: Dict[str, int] = field(default_factory=lambda: {'dataset1': 0, 'dataset2': 0})

    @property
    def stats(self) -> Dict[str, int]:
        return {
            'total1': self.total1,
            'total2': self.total2,
            'added': len(self.added),
            'removed': len(self.removed),
            'changed': len(self.changed),
            'unchanged': len(self.unchanged),
        }

    @property
    def has_differences(self) -> bool:
        return bool(self.added or self.removed or self.changed)

    def entries(self, kind: Optional[DiffKind] = None) -> List[DiffEntry]:
        """Entries of one kind, or all of them grouped added/removed/changed/unchanged."""
        groups = {
            DiffKind.ADDED: self.added,
            DiffKind.REMOVED: self.removed,
            DiffKind.CHANGED: self.changed,
            DiffKind.UNCHANGED: self.unchanged,
        }
        if kind is not None:
            return list(groups[kind])
        return [entry for group in groups.values() for entry in group]

    def to_dict(self) -> Dict:
        return {
            'key_column': self.key_column,
            'added': [entry.to_dict() for entry in self.added],
            'removed': [entry.to_dict() for entry in self.removed],
            'changed': [entry.to_dict() for entry in self.changed],
            'unchanged': [entry.to_dict() for entry in self.unchanged],
            'duplicate_keys': [dup.to_dict() for dup in self.duplicate_keys],
            'blank_keys': dict(self.blank_keys),
            'stats': self.stats,
        }
