import json
import os

import click
from flask import current_app
from flask.cli import with_appcontext

from keydiff.exceptions import KeyDiffError
from keydiff.export import export_result_csv, parse_kinds
from keydiff.session import ComparisonSession
from keydiff.utils import OVERRIDE_CHOICES, allowed_file, decode_text


def _read_file(path):
    filename = os.path.basename(path)
    if not allowed_file(filename, current_app.config['ALLOWED_EXTENSIONS']):
        raise click.BadParameter(
            f"{filename}: only {', '.join(sorted(current_app.config['ALLOWED_EXTENSIONS']))} files are accepted"
        )
    with open(path, 'rb') as f:
        return decode_text(f.read(), filename), filename


@click.command('compare')
@click.argument('file1', type=click.Path(exists=True, dir_okay=False))
@click.argument('file2', type=click.Path(exists=True, dir_okay=False))
@click.option('--key', 'key_column', default=None,
              help='Key column shared by both files (defaults to the first common column).')
@click.option('--delimiter', type=click.Choice(OVERRIDE_CHOICES), default=None,
              help='Field delimiter; "auto" infers it from extension and content.')
@click.option('--export', 'export_path', type=click.Path(dir_okay=False), default=None,
              help='Write the comparison as CSV to this path.')
@click.option('--kind', 'kinds', multiple=True,
              help='Limit the export to added, removed, changed or unchanged (repeatable).')
@click.option('--json', 'as_json', is_flag=True, help='Print the full result as JSON.')
@with_appcontext
def compare_command(file1, file2, key_column, delimiter, export_path, kinds, as_json):
    """Compare FILE1 and FILE2 record by record on a key column."""
    state = ComparisonSession(delimiter or current_app.config['DEFAULT_DELIMITER'])
    try:
        for slot, path in ((1, file1), (2, file2)):
            content, filename = _read_file(path)
            dataset = state.load_file(slot, content, filename)
            click.echo(f"File {slot}: {filename} - {dataset.row_count} rows x {dataset.column_count} columns "
                       f"(delimiter: {dataset.delimiter_label})", err=as_json)
        result = state.compare(key_column)
    except KeyDiffError as e:
        raise click.ClickException(f"{e.message}\n{e.details}" if e.details else e.message)

    if as_json:
        click.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        stats = result.stats
        click.echo(f"Key column: {result.key_column}")
        click.echo(f"Added: {stats['added']}  Removed: {stats['removed']}  "
                   f"Changed: {stats['changed']}  Unchanged: {stats['unchanged']}")
        for dup in result.duplicate_keys:
            click.echo(f"Warning: key {dup.key!r} appears {dup.count} times in file {dup.dataset}", err=True)

    if export_path:
        try:
            selected = parse_kinds(kinds)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint='--kind')
        with open(export_path, 'w', encoding='utf-8-sig', newline='') as f:
            f.write(export_result_csv(result, state.all_headers(), selected))
        click.echo(f"Exported to {export_path}", err=as_json)
