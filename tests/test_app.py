from firenozzle.app import get_application


def test_get_returns_same_object(monkeypatch):
    for name in (
        "NRF_CF_API_URL",
        "NRF_CF_API_UAA_URL",
        "NRF_CF_CLIENT_ID",
        "NRF_CF_CLIENT_SECRET",
        "NRF_CF_API_USERNAME",
        "NRF_CF_API_PASSWORD",
        "NRF_NEWRELIC_INSERT_KEY",
        "NRF_NEWRELIC_ACCOUNT_ID",
    ):
        monkeypatch.setenv(name, " ")
    first = get_application()
    second = get_application()
    assert first is second
    assert first.config is second.config
    assert first.config.get_string("ATTR_PREFIX") == "pcf"