from typing import Iterable, List, Optional

import pandas as pd

from keydiff.models import Changed, ComparisonResult, DiffEntry, DiffKind

CHANGE_ARROW = ' → '

STATUS_LABELS = {
    DiffKind.ADDED: 'Added',
    DiffKind.REMOVED: 'Removed',
    DiffKind.CHANGED: 'Changed',
    DiffKind.UNCHANGED: 'Unchanged',
}


def result_columns(result: ComparisonResult) -> List[str]:
    """Union of the columns seen across all entries, in first-seen order."""
    columns = []
    for entry in result.entries():
        records = [entry.record1, entry.record2] if isinstance(entry, Changed) else [entry.record]
        for record in records:
            for column in record:
                if column not in columns:
                    columns.append(column)
    return columns


def entry_cells(entry: DiffEntry, columns: List[str]) -> List[str]:
    if isinstance(entry, Changed):
        cells = []
        for column in columns:
            change = entry.differences.get(column)
            if change is not None:
                cells.append(f"{change.old}{CHANGE_ARROW}{change.new}")
            else:
                cells.append(entry.record2.get(column, entry.record1.get(column, '')))
        return cells
    return [entry.record.get(column, '') for column in columns]


def result_to_frame(result: ComparisonResult, columns: Optional[List[str]] = None,
                    kinds: Optional[Iterable[DiffKind]] = None) -> pd.DataFrame:
    """
    Flatten a comparison result into one row per entry.

    Leading columns are ``status`` and ``key``; changed cells hold
    ``old → new``.
    """
    if columns is None:
        columns = result_columns(result)
    selected = list(kinds) if kinds else list(STATUS_LABELS)

    rows = []
    for kind in selected:
        for entry in result.entries(kind):
            rows.append([STATUS_LABELS[kind], entry.key] + entry_cells(entry, columns))

    return pd.DataFrame(rows, columns=['status', 'key'] + list(columns), dtype=object)


def export_result_csv(result: ComparisonResult, columns: Optional[List[str]] = None,
                      kinds: Optional[Iterable[DiffKind]] = None) -> str:
    """Render a result as CSV text with standard quoting."""
    frame = result_to_frame(result, columns, kinds)
    return frame.to_csv(index=False, lineterminator='\n')


def parse_kinds(values: Optional[Iterable[str]]) -> Optional[List[DiffKind]]:
    """Turn names like 'added,changed' into DiffKind members; None means all."""
    if not values:
        return None
    kinds = []
    for value in values:
        for name in value.split(','):
            name = name.strip().lower()
            if name:
                kinds.append(DiffKind(name))
    return kinds or None
