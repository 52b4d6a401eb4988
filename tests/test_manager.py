import io

import pytest

from firenozzle.cfapp import CFApp, START_VALUE
from firenozzle.config import load_config
from firenozzle.logger import new_logger
from firenozzle.manager import AppDetails, CFAppManager, CFClientError

ENVIRON = {
    "NRF_CF_API_URL": "https://api.example.com",
    "NRF_CF_API_UAA_URL": "https://uaa.example.com",
    "NRF_CF_CLIENT_ID": "nozzle",
    "NRF_CF_CLIENT_SECRET": "secret",
    "NRF_CF_API_USERNAME": "admin",
    "NRF_CF_API_PASSWORD": "password",
    "NRF_NEWRELIC_INSERT_KEY": "placeholder",
    "NRF_NEWRELIC_ACCOUNT_ID": "12345",
}

STATES = {"0": "RUNNING", "1": "STARTING"}


class FakeClient:
    def __init__(self, error=None):
        self.details = AppDetails("billing", "dev", "acme", len(STATES))
        self.states = dict(STATES)
        self.env = {"VCAP_SERVICES": {"p-mysql": []}}
        self.error = error
        self.app_calls = []

    def get_app(self, guid):
        self.app_calls.append(guid)
        if self.error:
            raise self.error
        return self.details

    def get_app_instances(self, guid):
        if self.error:
            raise self.error
        return dict(self.states)

    def get_app_env(self, guid):
        if self.error:
            raise self.error
        return self.env


class Factory:
    def __init__(self, client):
        self.client = client
        self.created = 0

    def __call__(self):
        self.created += 1
        return self.client


class InlineExecutor:
    def submit(self, fn, *args):
        fn(*args)


def make_manager(client):
    config = load_config(ENVIRON)
    factory = Factory(client)
    manager = CFAppManager(
        factory,
        config,
        log=new_logger(config, io.StringIO()),
        executor=InlineExecutor(),
        background=False,
    )
    return manager, factory


def test_new_app_is_fetched_with_instances_and_env():
    client = FakeClient()
    manager, _ = make_manager(client)
    app = manager.get_app("guid-1")
    assert app.attributes["app.name"] == "billing"
    assert app.attributes["app.space.name"] == "dev"
    assert app.attributes["app.org.name"] == "acme"
    assert app.attributes["app.instances.desired"] == len(STATES)
    assert app.summaries == {0: "RUNNING", 1: "STARTING"}
    assert app.vcap_services == {"p-mysql": []}
    assert app.retry_count == 0


def test_get_app_uses_cache():
    client = FakeClient()
    manager, _ = make_manager(client)
    first = manager.get_app("guid-1")
    assert manager.get_app("guid-1") is first
    assert client.app_calls == ["guid-1"]


def test_instance_attributes_through_manager():
    manager, _ = make_manager(FakeClient())
    attrs = manager.get_app_instance_attributes("guid-1", 1)
    assert attrs["app.instance.state"] == "STARTING"
    assert attrs["app.instance.uid"] == "billing:1"
    assert manager.get_app_instance_attributes("guid-1", 7)["app.instance.state"] == START_VALUE


def test_failed_fetch_is_retried_then_abandoned():
    client = FakeClient(error=CFClientError("boom"))
    manager, _ = make_manager(client)
    app = manager.get_app("guid-1")
    assert len(client.app_calls) == 4
    assert app.retry_count == 3
    assert app.attributes["app.name"] == START_VALUE


def test_unauthorized_fetch_refreshes_client():
    client = FakeClient(error=CFClientError("401 Unauthorized"))
    manager, factory = make_manager(client)
    before = factory.created
    with pytest.raises(CFClientError, match="CF api error"):
        manager.fetch_app(CFApp("guid-1"))
    assert factory.created == before + 1


def test_update_instances_error_marks_instance_zero():
    client = FakeClient()
    manager, _ = make_manager(client)
    app = CFApp("guid-1")
    app.apply_instance_states({"0": "RUNNING"})
    client.error = CFClientError("gone")
    manager.update_instances(app)
    assert app.summaries[0] == "gone"


def test_fetch_env_error_leaves_services_unchanged():
    client = FakeClient(error=CFClientError("gone"))
    manager, _ = make_manager(client)
    app = CFApp("guid-1")
    manager.fetch_app_env(app)
    assert app.vcap_services == {}


def test_update_all_instances_refreshes_every_app():
    client = FakeClient()
    manager, _ = make_manager(client)
    apps = [manager.get_app("guid-1"), manager.get_app("guid-2")]
    client.states = {"0": "CRASHED"}
    manager.update_all_instances()
    assert [app.summaries[0] for app in apps] == ["CRASHED", "CRASHED"]


def test_update_client_calls_factory():
    manager, factory = make_manager(FakeClient())
    before = factory.created
    manager.update_client()
    assert factory.created == before + 1


def test_close_refuses_further_fetches():
    manager, _ = make_manager(FakeClient())
    manager.close()
    with pytest.raises(CFClientError, match="timeout on update container app details"):
        manager.fetch_app(CFApp("guid-1"))