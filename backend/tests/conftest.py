import pytest

NO_JSON = object()


class FakeResponse:
    def __init__(self, status_code=200, payload=NO_JSON, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is NO_JSON:
            raise ValueError("No JSON object could be decoded")
        return self._payload


@pytest.fixture
def make_response():
    return FakeResponse


@pytest.fixture
def no_json():
    return NO_JSON
