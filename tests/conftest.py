import pytest
from fastapi.testclient import TestClient

from app.config import get_settings
from app.main import app as fastapi_app
from tests.payloads import CONFIGURED


class FakeHTTP:
    """Routes patched requests.post / requests.put calls by URL suffix."""

    def __init__(self, mocker):
        self.mocker = mocker
        self.routes = {}
        self.post = mocker.patch("requests.post", side_effect=self._dispatch("POST"))
        self.put = mocker.patch("requests.put", side_effect=self._dispatch("PUT"))

    def on(self, method, suffix, json=None, error=None):
        self.routes[(method, suffix)] = (json, error)

    def _dispatch(self, method):
        def call(url, **kwargs):
            for (route_method, suffix), (payload, error) in self.routes.items():
                if route_method == method and url.endswith(suffix):
                    if error is not None:
                        raise error
                    return self._response(payload)
            return self._response({})
        return call

    def _response(self, payload):
        response = self.mocker.Mock()
        response.json.return_value = payload
        return response

    def calls(self, method, suffix):
        mock = self.post if method == "POST" else self.put
        return [c for c in mock.call_args_list if c.args[0].endswith(suffix)]


@pytest.fixture
def settings():
    return CONFIGURED


@pytest.fixture
def client(settings):
    fastapi_app.dependency_overrides[get_settings] = lambda: settings
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def http(mocker):
    return FakeHTTP(mocker)


@pytest.fixture
def stripe_session(mocker):
    session = mocker.Mock()
    session.id = "cs_test_123"
    session.url = "https://checkout.stripe.com/c/pay/cs_test_123"
    return mocker.patch("stripe.checkout.Session.create", return_value=session)
