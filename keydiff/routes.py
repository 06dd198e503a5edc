from flask import Blueprint, Response, current_app, jsonify, request, session

from keydiff.exceptions import KeyDiffError, SessionStateError
from keydiff.export import export_result_csv, parse_kinds
from keydiff.models import DiffKind
from keydiff.utils import OVERRIDE_CHOICES, allowed_file, decode_text, file_summary, normalize_override


main = Blueprint('main', __name__)


def _store():
    return current_app.extensions['keydiff_sessions']


def current_state(create=True):
    """Comparison session for the current browser session."""
    store = _store()
    state = store.get(session.get('state_id'))
    if state is None and create:
        state_id, state = store.create()
        session['state_id'] = state_id
    return state


@main.errorhandler(KeyDiffError)
def handle_keydiff_error(error):
    status = 409 if isinstance(error, SessionStateError) else 400
    current_app.logger.warning("%s: %s", type(error).__name__, error.message)
    return jsonify(error.to_dict()), status


@main.route('/')
def index():
    return jsonify({
        'service': 'keydiff',
        'allowed_extensions': sorted(current_app.config['ALLOWED_EXTENSIONS']),
        'delimiters': OVERRIDE_CHOICES,
        'kinds': [kind.value for kind in DiffKind],
    })


@main.route('/files/<int:slot>', methods=['POST'])
def upload_file(slot):
    if slot not in (1, 2):
        return jsonify({'error': 'Invalid file slot', 'details': 'Files are uploaded to slot 1 or 2.'}), 404

    if 'file' not in request.files:
        return jsonify({'error': 'File is required', 'details': 'Send the file in the "file" form field.'}), 400

    upload = request.files['file']
    if upload.filename == '':
        return jsonify({'error': 'No file selected', 'details': 'Please select a file before uploading.'}), 400

    # Content is parsed in memory and never written under this name
    filename = upload.filename
    if not allowed_file(filename, current_app.config['ALLOWED_EXTENSIONS']):
        return jsonify({
            'error': 'Invalid file type',
            'details': f'Only these file types are allowed: TSV, TXT, CSV, DAT\n\nYour file: {upload.filename}'
        }), 400

    content = decode_text(upload.read(), filename)
    state = current_state()
    dataset = state.load_file(slot, content, filename)
    current_app.logger.info("Loaded file %d: %s (%d rows)", slot, filename, dataset.row_count)

    summary = file_summary(filename, dataset)
    summary['preview'] = [dict(row) for row in dataset.rows[:current_app.config['PREVIEW_ROWS']]]
    return jsonify({
        'success': True,
        'slot': slot,
        'file': summary,
        'key_options': state.key_options(),
        'key_column': state.key_column,
    })


@main.route('/files')
def list_files():
    return jsonify(current_state().summary())


@main.route('/delimiter', methods=['POST'])
def change_delimiter():
    data = request.get_json(silent=True) or {}
    try:
        delimiter = normalize_override(data.get('delimiter') or request.form.get('delimiter'))
    except ValueError as e:
        return jsonify({'error': 'Invalid delimiter', 'details': str(e)}), 400

    state = current_state()
    state.set_delimiter(delimiter)
    return jsonify(state.summary())


@main.route('/keys')
def key_columns():
    state = current_state()
    return jsonify({'key_options': state.key_options(), 'key_column': state.key_column})


@main.route('/compare', methods=['POST'])
def compare():
    data = request.get_json(silent=True) or {}
    key_column = data.get('key_column', request.form.get('key_column'))

    state = current_state()
    result = state.compare(key_column)
    current_app.logger.info("Comparison complete: %s", result.stats)

    return jsonify({
        'success': True,
        'key_column': result.key_column,
        'stats': result.stats,
        'duplicate_keys': [dup.to_dict() for dup in result.duplicate_keys],
        'redirect': '/results',
    })


@main.route('/results')
def results():
    result = current_state().require_result()
    return jsonify(result.to_dict())


@main.route('/results/<kind>')
def results_by_kind(kind):
    try:
        diff_kind = DiffKind(kind)
    except ValueError:
        return jsonify({'error': 'Unknown result type', 'details': f'Use one of: {", ".join(k.value for k in DiffKind)}'}), 404

    result = current_state().require_result()
    return jsonify({
        'type': diff_kind.value,
        'key_column': result.key_column,
        'entries': [entry.to_dict() for entry in result.entries(diff_kind)],
    })


@main.route('/export')
def export_csv():
    state = current_state()
    result = state.require_result()
    try:
        kinds = parse_kinds(request.args.getlist('kind'))
    except ValueError as e:
        return jsonify({'error': 'Unknown result type', 'details': str(e)}), 400

    csv_text = export_result_csv(result, state.all_headers(), kinds)
    filename = current_app.config['EXPORT_FILENAME']
    return Response(
        csv_text.encode('utf-8-sig'),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'}
    )


@main.route('/reset', methods=['POST'])
def reset():
    _store().discard(session.pop('state_id', None))
    return jsonify({'success': True})
