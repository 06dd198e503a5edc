"""
Per-user comparison state.

A session holds two file slots (raw text, filename and the parsed dataset),
the active delimiter selector, the chosen key column and the latest result.
Re-parsing a slot or changing the key drops any result computed from the
old inputs.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Dict, List, Optional, Tuple

from keydiff.comparison import compare_datasets
from keydiff.exceptions import KeyColumnError, SessionStateError
from keydiff.models import ComparisonResult, ParsedDataset
from keydiff.utils import common_headers, file_summary, normalize_override, parse_content

logger = logging.getLogger(__name__)

SLOTS = (1, 2)


@dataclass
class FileSlot:
    filename: str
    content: str
    dataset: ParsedDataset


class ComparisonSession:

    def __init__(self, delimiter: str = 'auto'):
        self.delimiter = normalize_override(delimiter)
        self.slots: Dict[int, Optional[FileSlot]] = {1: None, 2: None}
        self.key_column: Optional[str] = None
        self.result: Optional[ComparisonResult] = None

    @staticmethod
    def _check_slot(slot: int):
        if slot not in SLOTS:
            raise ValueError(f"File slot must be 1 or 2, got {slot!r}")

    def dataset(self, slot: int) -> Optional[ParsedDataset]:
        self._check_slot(slot)
        file_slot = self.slots[slot]
        return file_slot.dataset if file_slot else None

    @property
    def ready(self) -> bool:
        return all(self.slots[slot] is not None for slot in SLOTS)

    def load_file(self, slot: int, content: str, filename: str) -> ParsedDataset:
        """Parse and store a file. On failure the slot keeps its previous dataset."""
        self._check_slot(slot)
        dataset = parse_content(content, filename, self.delimiter)
        self.slots[slot] = FileSlot(filename=filename, content=content, dataset=dataset)
        self.result = None
        self._refresh_key_column()
        return dataset

    def set_delimiter(self, delimiter: str) -> Dict[int, ParsedDataset]:
        """
        Change the delimiter selector and re-parse every loaded file from its
        retained text. Either all loaded slots are re-parsed or none are.
        """
        delimiter = normalize_override(delimiter)
        reparsed = {}
        for slot in SLOTS:
            file_slot = self.slots[slot]
            if file_slot is not None:
                reparsed[slot] = parse_content(file_slot.content, file_slot.filename, delimiter)

        self.delimiter = delimiter
        for slot, dataset in reparsed.items():
            file_slot = self.slots[slot]
            self.slots[slot] = FileSlot(filename=file_slot.filename, content=file_slot.content, dataset=dataset)
        self.result = None
        self._refresh_key_column()
        logger.info("Delimiter set to %s, reprocessed %d file(s)", delimiter, len(reparsed))
        return reparsed

    def all_headers(self) -> List[str]:
        """Headers of both loaded files without repeats, file 1 first."""
        headers = []
        for slot in SLOTS:
            dataset = self.dataset(slot)
            for header in (dataset.headers if dataset else []):
                if header not in headers:
                    headers.append(header)
        return headers

    def key_options(self) -> List[str]:
        return common_headers(self.dataset(1), self.dataset(2))

    def _refresh_key_column(self):
        options = self.key_options()
        if self.key_column not in options:
            self.key_column = options[0] if options else None

    def select_key(self, key_column: Optional[str]) -> str:
        if not key_column:
            raise KeyColumnError('No key column selected', 'Please choose a key column present in both files.')
        options = self.key_options()
        if key_column not in options:
            raise KeyColumnError(
                f'Unknown key column: {key_column}',
                f'Choose one of the columns shared by both files: {", ".join(options) or "(none)"}'
            )
        if key_column != self.key_column:
            self.result = None
        self.key_column = key_column
        return key_column

    def compare(self, key_column: Optional[str] = None) -> ComparisonResult:
        if not self.ready:
            missing = [str(slot) for slot in SLOTS if self.slots[slot] is None]
            raise SessionStateError('Both files are required', f'File(s) not loaded: {", ".join(missing)}')
        if key_column is not None:
            self.select_key(key_column)
        elif not self.key_column:
            raise KeyColumnError('No key column selected', 'The two files have no column in common.')
        self.result = compare_datasets(self.dataset(1), self.dataset(2), self.key_column)
        return self.result

    def require_result(self) -> ComparisonResult:
        if self.result is None:
            raise SessionStateError('No comparison data found', 'Upload both files and run a comparison first.')
        return self.result

    def reset(self):
        self.slots = {1: None, 2: None}
        self.key_column = None
        self.result = None

    def summary(self) -> Dict:
        files = {}
        for slot in SLOTS:
            file_slot = self.slots[slot]
            files[str(slot)] = file_summary(file_slot.filename, file_slot.dataset) if file_slot else None
        return {
            'files': files,
            'delimiter': self.delimiter,
            'key_options': self.key_options(),
            'key_column': self.key_column,
            'has_result': self.result is not None,
        }


class SessionStore:
    """
    In-memory registry of sessions keyed by an opaque id.

    Sessions idle for longer than ``lifetime`` are dropped the next time the
    store is touched.
    """

    def __init__(self, default_delimiter: str = 'auto', lifetime: timedelta = timedelta(hours=2),
                 clock: Callable[[], float] = time.monotonic):
        self.default_delimiter = default_delimiter
        self.lifetime = lifetime.total_seconds()
        self._clock = clock
        self._sessions: Dict[str, ComparisonSession] = {}
        self._last_access: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _evict_expired(self, now: float):
        expired = [sid for sid, seen in self._last_access.items() if now - seen > self.lifetime]
        for sid in expired:
            del self._sessions[sid]
            del self._last_access[sid]
        if expired:
            logger.info("Evicted %d idle comparison session(s)", len(expired))

    def get(self, session_id: Optional[str]) -> Optional[ComparisonSession]:
        if not session_id:
            return None
        with self._lock:
            now = self._clock()
            self._evict_expired(now)
            state = self._sessions.get(session_id)
            if state is not None:
                self._last_access[session_id] = now
            return state

    def create(self) -> Tuple[str, ComparisonSession]:
        session_id = str(uuid.uuid4())
        state = ComparisonSession(self.default_delimiter)
        with self._lock:
            now = self._clock()
            self._evict_expired(now)
            self._sessions[session_id] = state
            self._last_access[session_id] = now
        return session_id, state

    def discard(self, session_id: Optional[str]):
        with self._lock:
            self._sessions.pop(session_id, None)
            self._last_access.pop(session_id, None)

    def __len__(self):
        with self._lock:
            return len(self._sessions)
