# ratewatch/tests/test_config_loader.py
import pytest

from ratewatch.config_loader import Settings, load_config, validate
from ratewatch.errors import ConfigError


@pytest.fixture
def in_tmp(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_defaults_when_default_file_missing(in_tmp):
    settings = load_config()
    assert settings.rate_limit.window_seconds == 10.0
    assert settings.rate_limit.threshold == 100
    assert settings.capture.interface is None
    assert settings.capture.max_receive_retries == 3
    assert not settings.influx.enabled
    assert settings.log_level == "INFO"


def test_explicit_missing_file_is_an_error(in_tmp):
    with pytest.raises(ConfigError):
        load_config("nope.yaml")


def test_yaml_values(in_tmp):
    path = in_tmp / "cfg.yaml"
    path.write_text(
        "log_level: debug\n"
        "capture:\n  interface: eth1\n  poll_interval: 0.25\n  max_receive_retries: 0\n"
        "rate_limit:\n  window_seconds: 5\n  threshold: 20\n"
        "storage:\n  influx:\n    url: http://influx:8086\n    token: abc\n    bucket: b1\n"
    )
    settings = load_config(str(path))
    assert settings.capture.interface == "eth1"
    assert settings.capture.poll_interval == 0.25
    assert settings.capture.max_receive_retries == 0
    assert settings.rate_limit.window_seconds == 5.0
    assert settings.rate_limit.threshold == 20
    assert settings.influx.enabled
    assert settings.influx.bucket == "b1"
    assert settings.log_level == "DEBUG"


def test_environment_overrides_file(in_tmp, monkeypatch):
    path = in_tmp / "cfg.yaml"
    path.write_text("capture:\n  interface: eth1\nrate_limit:\n  threshold: 20\n")
    monkeypatch.setenv("IFACE", "wlan0")
    monkeypatch.setenv("RATEWATCH_THRESHOLD", "7")
    monkeypatch.setenv("INFLUX_TOKEN", "from-env")
    settings = load_config(str(path))
    assert settings.capture.interface == "wlan0"
    assert settings.rate_limit.threshold == 7
    assert settings.influx.token == "from-env"


def test_bad_number_is_config_error(in_tmp, monkeypatch):
    monkeypatch.setenv("RATEWATCH_WINDOW", "ten")
    with pytest.raises(ConfigError):
        load_config()


def test_invalid_yaml(in_tmp):
    path = in_tmp / "cfg.yaml"
    path.write_text("capture: [unclosed\n")
    with pytest.raises(ConfigError):
        load_config(str(path))


def test_top_level_must_be_mapping(in_tmp):
    path = in_tmp / "cfg.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ConfigError):
        load_config(str(path))


@pytest.mark.parametrize("mutate", [
    lambda s: setattr(s.rate_limit, "window_seconds", 0),
    lambda s: setattr(s.rate_limit, "threshold", 0),
    lambda s: setattr(s.capture, "poll_interval", -1),
    lambda s: setattr(s.capture, "max_receive_retries", -1),
])
def test_validate_rejects(mutate):
    settings = Settings()
    mutate(settings)
    with pytest.raises(ConfigError):
        validate(settings)


@pytest.mark.parametrize("value", ["nan", "inf", "-inf"])
def test_non_finite_window_is_rejected(in_tmp, monkeypatch, value):
    monkeypatch.setenv("RATEWATCH_WINDOW", value)
    with pytest.raises(ConfigError):
        load_config()


@pytest.mark.parametrize("body", ["rate_limit:\n  threshold: 10.5\n",
                                  "capture:\n  max_receive_retries: 1.5\n",
                                  "rate_limit:\n  threshold: true\n"])
def test_non_integer_counts_are_rejected(in_tmp, body):
    path = in_tmp / "cfg.yaml"
    path.write_text(body)
    with pytest.raises(ConfigError):
        load_config(str(path))


def test_integral_float_threshold_is_accepted(in_tmp):
    path = in_tmp / "cfg.yaml"
    path.write_text("rate_limit:\n  threshold: 20.0\n")
    assert load_config(str(path)).rate_limit.threshold == 20


def test_unknown_log_level_is_rejected(in_tmp, monkeypatch):
    monkeypatch.setenv("RATEWATCH_LOG_LEVEL", "verbose")
    with pytest.raises(ConfigError):
        load_config()


def test_log_level_is_case_insensitive(in_tmp, monkeypatch):
    monkeypatch.setenv("RATEWATCH_LOG_LEVEL", "warning")
    assert load_config().log_level == "WARNING"
