import httpx
import pytest

from cordra import ClientConfig, CordraClient, Options
from cordra.token_store import TokenStore
from fake_cordra import create_fake_cordra


BASE_URI = 'http://testserver'


@pytest.fixture
def fake_cordra():
    return create_fake_cordra()


@pytest.fixture
def server_state(fake_cordra):
    return fake_cordra.config['CORDRA_STATE']


@pytest.fixture
def http_client(fake_cordra):
    client = httpx.Client(transport=httpx.WSGITransport(app=fake_cordra))
    yield client
    client.close()


@pytest.fixture
def make_client(http_client):
    def factory(options=None, **config_overrides):
        config = ClientConfig(base_uri=BASE_URI, **config_overrides)
        return CordraClient(options=options, config=config, http_client=http_client,
                            token_store=TokenStore())
    return factory


@pytest.fixture
def cordra(make_client):
    return make_client(Options(username='admin', password='password'))
