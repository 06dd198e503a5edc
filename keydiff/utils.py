import logging
import os
import re
from typing import Dict, List, Optional

from keydiff.exceptions import ParseError
from keydiff.models import ParsedDataset, Record

logger = logging.getLogger(__name__)

DELIMITERS = {
    'tab': '\t',
    'comma': ',',
    'semicolon': ';',
    'pipe': '|',
}

DELIMITER_LABELS = {
    '\t': 'Tab',
    ',': 'Comma',
    ';': 'Semicolon',
    '|': 'Pipe',
}

# Tie-break order when several candidates share the highest count
DELIMITER_PRIORITY = ['\t', ',', ';', '|']

EXTENSION_DELIMITERS = {
    '.csv': ',',
    '.tsv': '\t',
}

OVERRIDE_CHOICES = ['auto'] + list(DELIMITERS)

_LINE_BREAK = re.compile(r'\r\n|\r|\n')


def normalize_override(value: Optional[str]) -> str:
    """Validate a delimiter selector value, treating blank as 'auto'."""
    if value is None or not value.strip():
        return 'auto'
    value = value.strip().lower()
    if value not in OVERRIDE_CHOICES:
        raise ValueError(f"Unknown delimiter option: {value!r} (expected one of {', '.join(OVERRIDE_CHOICES)})")
    return value


def delimiter_label(delimiter: str) -> str:
    """Human-readable name of a delimiter character."""
    return DELIMITER_LABELS.get(delimiter, delimiter)


def resolve_delimiter(content: str, filename: str, override: str = 'auto') -> str:
    """
    Decide which delimiter to use for a file.

    Priority:
        1. An explicit override (tab, comma, semicolon, pipe)
        2. The filename extension (.csv, .tsv)
        3. The most frequent candidate on the first line of content

    Returns tab when nothing on the first line looks like a delimiter, and
    for an override name it does not know.
    """
    if override is None:
        override = 'auto'
    if override != 'auto':
        return DELIMITERS.get(override, '\t')

    extension = os.path.splitext(filename or '')[1].lower()
    if extension in EXTENSION_DELIMITERS:
        return EXTENSION_DELIMITERS[extension]

    first_line = _LINE_BREAK.split(content, maxsplit=1)[0] if content else ''
    counts = {delim: first_line.count(delim) for delim in DELIMITER_PRIORITY}
    max_count = max(counts.values())

    if max_count == 0:
        logger.warning("No delimiter detected in first line of %s, falling back to tab", filename)
        return '\t'

    for delim in DELIMITER_PRIORITY:
        if counts[delim] == max_count:
            return delim


def split_lines(content: str) -> List[str]:
    return _LINE_BREAK.split(content)


def build_record(headers: List[str], values: List[str]) -> Record:
    """Map headers to values by position; short lines pad with empty strings."""
    record = {}
    for index, header in enumerate(headers):
        record[header] = values[index].strip() if index < len(values) else ''
    return record


def parse_content(content: str, filename: str, delimiter_override: str = 'auto') -> ParsedDataset:
    """
    Parse delimited text into a dataset.

    The first non-blank line is the header row. Blank lines and rows whose
    values are all empty are dropped; every other row keeps its file order.

    Raises:
        ParseError: empty content, no data lines, an empty header field,
            or no data rows left after dropping blank ones.
    """
    content = (content or '').strip()
    if not content:
        raise ParseError('File is empty', f'"{filename}" contains no data or only blank lines.')

    lines = split_lines(content)
    non_empty = [line for line in lines if line.strip()]
    if len(non_empty) < 2:
        raise ParseError(
            'Header and data rows required',
            f'"{filename}" must contain a header line followed by at least one data line.'
        )

    delimiter = resolve_delimiter(content, filename, delimiter_override)

    headers = [h.strip() for h in lines[0].split(delimiter)]
    empty_positions = [str(i + 1) for i, h in enumerate(headers) if h == '']
    if empty_positions:
        raise ParseError(
            'Empty header present',
            f'"{filename}" has empty column names at position(s) {", ".join(empty_positions)} '
            f'using {delimiter_label(delimiter)} as delimiter.'
        )

    rows = []
    skipped = 0
    for line in lines[1:]:
        if not line.strip():
            skipped += 1
            continue
        record = build_record(headers, line.split(delimiter))
        if all(value == '' for value in record.values()):
            skipped += 1
            continue
        rows.append(record)

    if not rows:
        raise ParseError('No data rows found', f'"{filename}" has headers ({", ".join(headers[:5])}) but no data rows.')

    logger.info(
        "Parsed %s: %d rows x %d columns, delimiter=%s, skipped %d blank rows",
        filename, len(rows), len(headers), delimiter_label(delimiter), skipped
    )
    return ParsedDataset(
        headers=headers,
        rows=rows,
        delimiter=delimiter,
        delimiter_label=delimiter_label(delimiter),
    )


def common_headers(dataset1: Optional[ParsedDataset], dataset2: Optional[ParsedDataset]) -> List[str]:
    """Headers present in both datasets, in the first dataset's order."""
    if dataset1 is None or dataset2 is None:
        return []
    seen = set()
    common = []
    for header in dataset1.headers:
        if header in dataset2.headers and header not in seen:
            seen.add(header)
            common.append(header)
    return common


def decode_text(raw: bytes, filename: str) -> str:
    """Decode uploaded bytes as UTF-8, dropping a leading byte-order mark."""
    try:
        return raw.decode('utf-8-sig')
    except UnicodeDecodeError:
        raise ParseError(
            'File encoding error',
            f'"{filename}" contains characters that cannot be read as UTF-8. '
            'It may be a binary file (like Excel .xlsx).\n\nPlease save it as UTF-8 text.'
        )


def allowed_file(filename: str, allowed_extensions) -> bool:
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in allowed_extensions


def file_summary(filename: str, dataset: ParsedDataset) -> Dict:
    return {
        'filename': filename,
        'rows': dataset.row_count,
        'columns': dataset.column_count,
        'delimiter': dataset.delimiter_label,
        'headers': list(dataset.headers),
    }
