# ratewatch/config_loader.py
# Loads settings from config.yaml and .env. Environment variables override the file, CLI flags override both.
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from loguru import logger

from ratewatch.errors import ConfigError

DEFAULT_CONFIG_PATH = "config/config.yaml"

load_dotenv()  # loads .env


@dataclass
class RateLimitSettings:
    window_seconds: float = 10.0
    threshold: int = 100


@dataclass
class CaptureSettings:
    interface: Optional[str] = None  # None -> first active non-loopback interface
    promisc: bool = True
    poll_interval: float = 0.5
    max_receive_retries: int = 3


@dataclass
class InfluxSettings:
    url: Optional[str] = None
    token: Optional[str] = None
    org: str = "networkorg"
    bucket: str = "rate_limits"

    @property
    def enabled(self) -> bool:
        return bool(self.url and self.token)


@dataclass
class Settings:
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    capture: CaptureSettings = field(default_factory=CaptureSettings)
    influx: InfluxSettings = field(default_factory=InfluxSettings)
    log_level: str = "INFO"


def _read_yaml(path: str, explicit: bool) -> dict:
    p = Path(path)
    if not p.exists():
        if explicit:
            raise ConfigError(f"Config not found: {path}")
        return {}
    try:
        with p.open() as f:
            cfg = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(cfg, dict):
        raise ConfigError(f"Top level of {path} must be a mapping")
    return cfg


def _coerce(value, kind, name: str):
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {name}: {value!r}") from e


def _coerce_int(value, name: str) -> int:
    # int(10.5) would silently truncate
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ConfigError(f"Invalid value for {name}: {value!r} is not an integer")
    return _coerce(value, int, name)


def load_config(path: Optional[str] = None) -> Settings:
    """
    Build Settings from the YAML file at `path` (default config/config.yaml) and the environment.

    A missing file at the default location is not an error; an explicitly requested one is.
    """
    cfg = _read_yaml(path or DEFAULT_CONFIG_PATH, explicit=path is not None)
    rate_cfg = cfg.get("rate_limit") or {}
    capture_cfg = cfg.get("capture") or {}
    influx_cfg = (cfg.get("storage") or {}).get("influx") or {}

    settings = Settings()
    rl = settings.rate_limit
    rl.window_seconds = _coerce(os.getenv("RATEWATCH_WINDOW", rate_cfg.get("window_seconds", rl.window_seconds)),
                                float, "window_seconds")
    rl.threshold = _coerce_int(os.getenv("RATEWATCH_THRESHOLD", rate_cfg.get("threshold", rl.threshold)),
                               "threshold")

    cap = settings.capture
    cap.interface = os.getenv("IFACE", capture_cfg.get("interface", cap.interface)) or None
    cap.promisc = bool(capture_cfg.get("promisc", cap.promisc))
    cap.poll_interval = _coerce(capture_cfg.get("poll_interval", cap.poll_interval), float, "poll_interval")
    cap.max_receive_retries = _coerce_int(
        os.getenv("RATEWATCH_MAX_RETRIES", capture_cfg.get("max_receive_retries", cap.max_receive_retries)),
        "max_receive_retries")

    influx = settings.influx
    # merge env-overrides for the influx credentials
    influx.url = os.getenv("INFLUX_URL", influx_cfg.get("url", influx.url))
    influx.token = os.getenv("INFLUX_TOKEN", influx_cfg.get("token", influx.token))
    influx.org = os.getenv("INFLUX_ORG", influx_cfg.get("org", influx.org))
    influx.bucket = os.getenv("INFLUX_BUCKET", influx_cfg.get("bucket", influx.bucket))

    settings.log_level = str(os.getenv("RATEWATCH_LOG_LEVEL", cfg.get("log_level", settings.log_level))).upper()
    validate(settings)
    return settings


def validate(settings: Settings) -> Settings:
    if not math.isfinite(settings.rate_limit.window_seconds) or settings.rate_limit.window_seconds <= 0:
        raise ConfigError("window_seconds must be a positive finite number")
    if settings.rate_limit.threshold < 1:
        raise ConfigError("threshold must be at least 1")
    if not math.isfinite(settings.capture.poll_interval) or settings.capture.poll_interval <= 0:
        raise ConfigError("poll_interval must be a positive finite number")
    if settings.capture.max_receive_retries < 0:
        raise ConfigError("max_receive_retries cannot be negative")
    try:
        logger.level(settings.log_level)
    except ValueError as e:
        raise ConfigError(f"Unknown log level: {settings.log_level}") from e
    return settings
