import pytest

from keydiff import create_app
from keydiff.config import TestingConfig
from keydiff.utils import parse_content


@pytest.fixture
def app():
    return create_app(TestingConfig)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def old_csv():
    return (
        "id,name,price\n"
        "1,Apple,100\n"
        "2,Banana,80\n"
        "3,Cherry,300\n"
    )


@pytest.fixture
def new_csv():
    return (
        "id,name,price\n"
        "1,Apple,120\n"
        "3,Cherry,300\n"
        "4,Durian,900\n"
    )


@pytest.fixture
def make_dataset():
    def _make(text, filename='data.csv', delimiter='auto'):
        return parse_content(text, filename, delimiter)
    return _make
