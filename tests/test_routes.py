import csv
import io


def upload(client, slot, text, filename):
    return client.post(
        f'/files/{slot}',
        data={'file': (io.BytesIO(text.encode('utf-8')), filename)},
        content_type='multipart/form-data',
    )


def load_both(client, old_csv, new_csv):
    assert upload(client, 1, old_csv, 'old.csv').status_code == 200
    assert upload(client, 2, new_csv, 'new.csv').status_code == 200


def test_index(client):
    data = client.get('/').get_json()
    assert data['allowed_extensions'] == ['csv', 'dat', 'tsv', 'txt']
    assert data['kinds'] == ['added', 'removed', 'changed', 'unchanged']
    assert data['delimiters'] == ['auto', 'tab', 'comma', 'semicolon', 'pipe']


def test_upload_reports_file_info(client, old_csv):
    response = upload(client, 1, old_csv, 'old.csv')
    data = response.get_json()
    assert data['file']['rows'] == 3
    assert data['file']['columns'] == 3
    assert data['file']['delimiter'] == 'Comma'
    assert len(data['file']['preview']) == 3
    assert data['key_options'] == []


def test_full_flow(client, old_csv, new_csv):
    load_both(client, old_csv, new_csv)
    assert client.get('/keys').get_json() == {'key_options': ['id', 'name', 'price'], 'key_column': 'id'}

    response = client.post('/compare', json={'key_column': 'id'})
    assert response.status_code == 200
    assert response.get_json()['stats'] == {
        'total1': 3, 'total2': 3, 'added': 1, 'removed': 1, 'changed': 1, 'unchanged': 1
    }

    results = client.get('/results').get_json()
    assert results['changed'][0]['differences'] == {'price': {'old': '100', 'new': '120'}}

    added = client.get('/results/added').get_json()
    assert added['entries'] == [{'type': 'added', 'key': '4', 'data': {'id': '4', 'name': 'Durian', 'price': '900'}}]


def test_export_download(client, old_csv, new_csv):
    load_both(client, old_csv, new_csv)
    client.post('/compare', json={})

    response = client.get('/export?kind=changed')
    assert response.status_code == 200
    assert response.mimetype == 'text/csv'
    assert 'attachment' in response.headers['Content-Disposition']
    rows = list(csv.reader(io.StringIO(response.data.decode('utf-8-sig'))))
    assert rows == [['status', 'key', 'id', 'name', 'price'], ['Changed', '1', '1', 'Apple', '100 → 120']]


def test_export_unknown_kind(client, old_csv, new_csv):
    load_both(client, old_csv, new_csv)
    client.post('/compare')
    assert client.get('/export?kind=moved').status_code == 400


def test_upload_non_ascii_filename(client):
    response = upload(client, 1, 'id,name\n1,りんご', 'データ.csv')
    assert response.status_code == 200
    data = response.get_json()
    assert data['file']['filename'] == 'データ.csv'
    assert data['file']['delimiter'] == 'Comma'
    assert data['file']['preview'] == [{'id': '1', 'name': 'りんご'}]


def test_invalid_extension(client):
    response = upload(client, 1, 'a,b\n1,2', 'data.xlsx')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Invalid file type'


def test_parse_error_returned_as_json(client):
    response = upload(client, 2, 'id,name\n', 'empty.csv')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Header and data rows required'


def test_missing_file_field(client):
    assert client.post('/files/1', data={}, content_type='multipart/form-data').status_code == 400


def test_bad_slot(client):
    assert upload(client, 3, 'a\n1', 'x.txt').status_code == 404


def test_compare_before_upload(client):
    response = client.post('/compare', json={'key_column': 'id'})
    assert response.status_code == 409


def test_compare_unknown_key(client, old_csv, new_csv):
    load_both(client, old_csv, new_csv)
    response = client.post('/compare', json={'key_column': 'sku'})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Unknown key column: sku'


def test_results_before_compare(client):
    assert client.get('/results').status_code == 409


def test_unknown_result_kind(client):
    assert client.get('/results/moved').status_code == 404


def test_delimiter_change_discards_result(client):
    upload(client, 1, 'id;name\n1;a', 'one.txt')
    upload(client, 2, 'id;name\n1;b', 'two.txt')
    client.post('/compare')

    response = client.post('/delimiter', json={'delimiter': 'comma'})
    data = response.get_json()
    assert data['delimiter'] == 'comma'
    assert data['has_result'] is False
    assert data['files']['1']['delimiter'] == 'Comma'
    assert client.get('/results').status_code == 409


def test_invalid_delimiter(client):
    assert client.post('/delimiter', json={'delimiter': 'colon'}).status_code == 400


def test_reset(client, old_csv, new_csv):
    load_both(client, old_csv, new_csv)
    client.post('/compare')
    assert client.post('/reset').get_json() == {'success': True}
    assert client.get('/files').get_json()['files'] == {'1': None, '2': None}


def test_sessions_are_isolated(app, old_csv, new_csv):
    first, second = app.test_client(), app.test_client()
    load_both(first, old_csv, new_csv)
    assert second.get('/files').get_json()['files'] == {'1': None, '2': None}
