from datetime import timedelta

import pytest

from keydiff.exceptions import KeyColumnError, ParseError, SessionStateError
from keydiff.session import ComparisonSession, SessionStore


@pytest.fixture
def loaded(old_csv, new_csv):
    state = ComparisonSession()
    state.load_file(1, old_csv, 'old.csv')
    state.load_file(2, new_csv, 'new.csv')
    return state


def test_first_common_header_selected(loaded):
    assert loaded.key_options() == ['id', 'name', 'price']
    assert loaded.key_column == 'id'


def test_compare_stores_result(loaded):
    result = loaded.compare()
    assert loaded.require_result() is result
    assert result.stats['changed'] == 1


def test_failed_parse_keeps_previous_dataset(loaded):
    before = loaded.dataset(1)
    with pytest.raises(ParseError):
        loaded.load_file(1, 'id,name\n', 'broken.csv')
    assert loaded.dataset(1) is before
    assert loaded.slots[1].filename == 'old.csv'


def test_reload_invalidates_result(loaded, new_csv):
    loaded.compare()
    loaded.load_file(1, new_csv, 'again.csv')
    assert loaded.result is None
    with pytest.raises(SessionStateError):
        loaded.require_result()


def test_delimiter_change_reprocesses_retained_text():
    state = ComparisonSession()
    state.load_file(1, 'id;name\n1;a', 'one.txt')
    state.load_file(2, 'id;name\n1;b', 'two.txt')
    state.compare()

    state.set_delimiter('comma')

    assert state.result is None
    assert state.dataset(1).headers == ['id;name']
    assert state.dataset(1).delimiter_label == 'Comma'
    assert state.key_column == 'id;name'


def test_failed_reprocess_changes_nothing():
    state = ComparisonSession()
    state.load_file(1, 'id,name\n1,a', 'one.txt')
    state.load_file(2, 'id|name|x,\n1|a|b,', 'two.txt')
    state.compare()
    before = (state.dataset(1), state.dataset(2))

    # comma leaves the second file with a trailing empty header
    with pytest.raises(ParseError, match='Empty header'):
        state.set_delimiter('comma')

    assert (state.dataset(1), state.dataset(2)) == before
    assert state.delimiter == 'auto'
    assert state.result is not None


def test_compare_requires_both_files(old_csv):
    state = ComparisonSession()
    state.load_file(1, old_csv, 'old.csv')
    with pytest.raises(SessionStateError, match='Both files'):
        state.compare()


def test_no_common_columns():
    state = ComparisonSession()
    state.load_file(1, 'a,b\n1,2', 'one.csv')
    state.load_file(2, 'c,d\n1,2', 'two.csv')
    assert state.key_options() == []
    with pytest.raises(KeyColumnError):
        state.compare()


def test_select_unknown_key(loaded):
    with pytest.raises(KeyColumnError, match='Unknown key column'):
        loaded.select_key('sku')
    with pytest.raises(KeyColumnError):
        loaded.compare('')


def test_changing_key_invalidates_result(loaded):
    loaded.compare()
    loaded.select_key('name')
    assert loaded.result is None
    assert loaded.compare().key_column == 'name'


def test_all_headers_and_summary(loaded):
    loaded.load_file(2, 'id,name,stock\n1,a,3', 'new.csv')
    assert loaded.all_headers() == ['id', 'name', 'price', 'stock']
    summary = loaded.summary()
    assert summary['files']['1']['rows'] == 3
    assert summary['files']['2']['headers'] == ['id', 'name', 'stock']
    assert summary['has_result'] is False


def test_invalid_slot():
    with pytest.raises(ValueError):
        ComparisonSession().load_file(3, 'a\n1', 'x.txt')


def test_reset(loaded):
    loaded.compare()
    loaded.reset()
    assert not loaded.ready and loaded.result is None and loaded.key_column is None


def test_store_roundtrip():
    store = SessionStore('pipe')
    state_id, state = store.create()
    assert store.get(state_id) is state
    assert state.delimiter == 'pipe'
    store.discard(state_id)
    assert store.get(state_id) is None
    assert len(store) == 0


class FakeClock:

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_store_evicts_idle_sessions():
    clock = FakeClock()
    store = SessionStore(lifetime=timedelta(minutes=10), clock=clock)
    idle_id, _ = store.create()
    clock.now = 300
    active_id, active = store.create()

    clock.now = 650
    # touching the active session keeps it alive; the idle one has expired
    assert store.get(active_id) is active
    assert store.get(idle_id) is None
    assert len(store) == 1

    clock.now = 1200
    store.create()
    assert store.get(active_id) is active

    clock.now = 1900
    assert store.get(active_id) is None
    assert len(store) == 0
