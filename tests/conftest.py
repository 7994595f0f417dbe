import pytest

from fake_backend import EMPLOYEE_ID, TOKEN, FakeBackend
from grandcentral_server.api_client import ApiClient
from grandcentral_server.auth import AuthManager
from grandcentral_server.config import Settings
from grandcentral_server.grandcentral_client import GrandCentralClient
from grandcentral_server.notifications import BufferedToastSink, Notifier


@pytest.fixture
def backend():
    return FakeBackend(today="2024-06-09")


@pytest.fixture
def settings(tmp_path):
    return Settings(base_url="http://test", session_file=str(tmp_path / "session.json"))


@pytest.fixture
def auth_manager(settings):
    return AuthManager(settings.session_file)


@pytest.fixture
def logged_in(auth_manager):
    auth_manager.save_login(TOKEN, employee_id=EMPLOYEE_ID)
    return auth_manager


@pytest.fixture
async def api(settings, auth_manager, backend):
    client = ApiClient(settings, auth_manager, transport=backend.transport())
    yield client
    await client.aclose()


@pytest.fixture
def client(api):
    return GrandCentralClient(api)


@pytest.fixture
def toasts():
    return BufferedToastSink()


@pytest.fixture
def notifier(toasts):
    return Notifier(toasts)
