import pytest

import config
import main

ENV = {
    "MERCHANTID": "3002607",
    "HASHKEY": "pwFHCqoQZGmho4w6",
    "HASHIV": "EkRm7iFT261dpevs",
    "RETURN_URL": "https://relay.example.com/ecpay/return",
    "CLIENT_BACK_URL": "https://shop.example.com/payment/done",
    "SPRING_BASE": "http://spring.internal:8080/",
    "NOTIFY_SECRET": "s3cret",
}


def test_load_settings_defaults():
    settings = config.load_settings(ENV)
    assert settings.credentials.merchant_id == "3002607"
    assert settings.credentials.client_back_url == ENV["CLIENT_BACK_URL"]
    assert settings.spring_base == "http://spring.internal:8080"
    assert settings.use_relay_return is False
    assert settings.sandbox is True
    assert settings.gateway_url == config.SANDBOX_GATEWAY_URL


def test_load_settings_optional_values():
    settings = config.load_settings(
        {
            **ENV,
            "USE_RELAY_RETURN": "1",
            "RELAY_BASE": "https://relay.example.com",
            "ECPAY_SANDBOX": "false",
            "LOG_LEVEL": "debug",
        }
    )
    assert settings.use_relay_return is True
    assert settings.client_return_url == "https://relay.example.com/ecpay/clientReturn"
    assert settings.gateway_url == config.PRODUCTION_GATEWAY_URL
    assert settings.log_level == "DEBUG"


def test_settings_are_immutable():
    settings = config.load_settings(ENV)
    with pytest.raises(AttributeError):
        settings.notify_secret = "other"
    with pytest.raises(AttributeError):
        settings.credentials.hash_key = "other"


@pytest.mark.parametrize("name", config.REQUIRED_VARS)
def test_missing_required_value(name):
    env = {**ENV, name: "  "}
    with pytest.raises(config.ConfigError) as exc:
        config.load_settings(env)
    assert exc.value.missing == (name,)


def test_startup_exits_without_config(monkeypatch):
    for name in config.REQUIRED_VARS:
        monkeypatch.delenv(name, raising=False)
    with pytest.raises(SystemExit) as exc:
        main.get_app()
    assert exc.value.code == 1


def test_get_app_loads_settings_once(monkeypatch):
    for name, value in ENV.items():
        monkeypatch.setenv(name, value)
    calls = []
    real_load = config.load_settings

    def counting_load(*args, **kwargs):
        calls.append(1)
        return real_load(*args, **kwargs)

    monkeypatch.setattr(config, "load_settings", counting_load)
    app = main.get_app()
    assert len(calls) == 1
    assert app.state.settings.credentials.merchant_id == "3002607"
    assert app.state.settings.spring_base == "http://spring.internal:8080"
