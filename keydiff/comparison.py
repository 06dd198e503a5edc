import logging
import warnings
from collections import Counter
from typing import Dict, List, Optional, Tuple

from keydiff.exceptions import DuplicateKeyWarning, KeyColumnError
from keydiff.models import (
    Added, Changed, ComparisonResult, DuplicateKey, FieldChange, ParsedDataset,
    Record, Removed, Unchanged,
)

logger = logging.getLogger(__name__)


def build_index(dataset: ParsedDataset, key_column: str) -> Tuple[Dict[str, Record], Counter, int]:
    """
    Index a dataset's rows by key.

    Rows with a blank key are left out. When a key repeats, the later row
    replaces the earlier one but the key keeps its first position.

    Returns:
        (index, key occurrence counts, number of blank-key rows)
    """
    index = {}
    occurrences = Counter()
    blank = 0
    for row in dataset.rows:
        key = (row.get(key_column) or '').strip()
        if not key:
            blank += 1
            continue
        occurrences[key] += 1
        index[key] = row
    return index, occurrences, blank


def union_columns(record1: Record, record2: Record) -> List[str]:
    columns = list(record1)
    columns.extend(col for col in record2 if col not in record1)
    return columns


def diff_records(record1: Record, record2: Record) -> Dict[str, FieldChange]:
    """Columns whose values differ between two records; absent values count as ''."""
    differences = {}
    for column in union_columns(record1, record2):
        old = record1.get(column, '')
        new = record2.get(column, '')
        if old != new:
            differences[column] = FieldChange(old=old, new=new)
    return differences


def _report_duplicates(dataset_number: int, occurrences: Counter) -> List[DuplicateKey]:
    duplicates = [
        DuplicateKey(dataset=dataset_number, key=key, count=count)
        for key, count in occurrences.items() if count > 1
    ]
    for dup in duplicates:
        logger.warning(
            "%s: key %r appears %d times in dataset %d, keeping the last occurrence",
            DuplicateKeyWarning.__name__, dup.key, dup.count, dataset_number
        )
        warnings.warn(
            f"key {dup.key!r} appears {dup.count} times in dataset {dataset_number}",
            DuplicateKeyWarning, stacklevel=3
        )
    return duplicates


def compare_datasets(dataset1: Optional[ParsedDataset], dataset2: Optional[ParsedDataset],
                     key_column: Optional[str]) -> ComparisonResult:
    """
    Compare two datasets record by record, matching rows on ``key_column``.

    Algorithm:
    - Index both datasets by key (blank keys skipped, last write wins)
    - Keys only in dataset 2 are added, in dataset 2 order
    - Keys only in dataset 1 are removed, in dataset 1 order
    - Keys in both are changed when any column differs, else unchanged,
      in dataset 1 order

    Values are compared as exact strings; nothing is case folded or parsed
    as a number.

    Raises:
        KeyColumnError: no key column given.
        ValueError: either dataset is missing.
    """
    if not key_column or not key_column.strip():
        raise KeyColumnError('No key column selected', 'Please choose a key column present in both files.')
    if dataset1 is None or dataset2 is None:
        raise ValueError('Both datasets are required for comparison')

    index1, occurrences1, blank1 = build_index(dataset1, key_column)
    index2, occurrences2, blank2 = build_index(dataset2, key_column)

    result = ComparisonResult(
        key_column=key_column,
        total1=dataset1.row_count,
        total2=dataset2.row_count,
        blank_keys={'dataset1': blank1, 'dataset2': blank2},
    )
    result.duplicate_keys.extend(_report_duplicates(1, occurrences1))
    result.duplicate_keys.extend(_report_duplicates(2, occurrences2))

    for key, record in index2.items():
        if key not in index1:
            result.added.append(Added(key=key, record=dict(record)))

    for key, record in index1.items():
        if key not in index2:
            result.removed.append(Removed(key=key, record=dict(record)))

    for key, record1 in index1.items():
        record2 = index2.get(key)
        if record2 is None:
            continue
        differences = diff_records(record1, record2)
        if differences:
            result.changed.append(
                Changed(key=key, record1=dict(record1), record2=dict(record2), differences=differences)
            )
        else:
            result.unchanged.append(Unchanged(key=key, record=dict(record1)))

    logger.info("Comparison on %r complete: %s", key_column, result.stats)
    return result
