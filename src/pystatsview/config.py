"""Configuration for pystatsview.

Settings load from ``STATSVIEW_*`` environment variables on top of the
defaults below. Options are plain functions applied to a settings object
before the server starts; nothing here is safe to change while serving.
"""

import time
from enum import Enum
from string import Template
from typing import Callable

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pystatsview.errors import ConfigurationError


class Theme(str, Enum):
    """ECharts themes shipped with the dashboard."""

    MACARONS = "macarons"
    WESTEROS = "westeros"


DEFAULT_TEMPLATE = """
setInterval(${view_id}_sync, ${interval});
function ${view_id}_sync() {
    fetch("http://${addr}${prefix}/view/${route}")
        .then(function (resp) { return resp.json(); })
        .then(function (result) {
            let opt = goecharts_${view_id}.getOption();

            let x = opt.xAxis[0].data;
            x.push(result.time);
            if (x.length > ${max_points}) {
                x = x.slice(1);
            }
            opt.xAxis[0].data = x;

            for (let i = 0; i < result.values.length; i++) {
                let y = opt.series[i].data;
                y.push({ value: result.values[i] });
                if (y.length > ${max_points}) {
                    y = y.slice(1);
                }
                opt.series[i].data = y;
            }
            goecharts_${view_id}.setOption(opt);
        })
        .catch(function () {});
}"""

DEFAULT_MAX_POINTS = 30
DEFAULT_TIME_FORMAT = "%H:%M:%S"
DEFAULT_INTERVAL_MS = 2000
DEFAULT_ADDR = "localhost:18066"
DEFAULT_THEME = Theme.MACARONS
DEFAULT_PREFIX = "/debug/statsview"
DEFAULT_ASSETS_HOST = "https://go-echarts.github.io/go-echarts-assets/assets/"

TEMPLATE_FIELDS = {
    "view_id": "chart",
    "interval": DEFAULT_INTERVAL_MS,
    "max_points": DEFAULT_MAX_POINTS,
    "addr": DEFAULT_ADDR,
    "prefix": DEFAULT_PREFIX,
    "route": "route",
}


class Settings(BaseSettings):
    """Dashboard settings."""

    model_config = SettingsConfigDict(env_prefix="STATSVIEW_", validate_assignment=True)

    interval_ms: int = Field(DEFAULT_INTERVAL_MS, gt=0, description="Sampling and pull interval")
    max_points: int = Field(DEFAULT_MAX_POINTS, gt=0, description="Points kept per chart series")
    listen_addr: str = Field(DEFAULT_ADDR, description="host:port the server binds")
    link_addr: str = Field(DEFAULT_ADDR, description="host:port the page links to")
    time_format: str = Field(DEFAULT_TIME_FORMAT, description="strftime pattern for point labels")
    theme: Theme = Field(DEFAULT_THEME, description="Chart theme")
    auto_open_browser: bool = Field(False, description="Open the dashboard on start")
    template: str = Field(DEFAULT_TEMPLATE, description="Per-chart pull script")
    prefix: str = Field(DEFAULT_PREFIX, description="Mount path of the dashboard")
    assets_host: str = Field(DEFAULT_ASSETS_HOST, description="Where echarts scripts load from")

    @field_validator("time_format")
    @classmethod
    def _check_time_format(cls, value: str) -> str:
        if not value:
            raise ValueError("time format must not be empty")
        literal = value.replace("%%", "")
        if literal.endswith("%"):
            raise ValueError(f"time format {value!r} ends with a lone %")
        if "%" not in literal:
            raise ValueError(f"time format {value!r} has no strftime directive")
        try:
            time.strftime(value, time.localtime(0))
        except (ValueError, TypeError) as exc:
            raise ValueError(f"invalid time format {value!r}: {exc}") from exc
        return value

    @field_validator("template")
    @classmethod
    def _check_template(cls, value: str) -> str:
        try:
            Template(value).substitute(TEMPLATE_FIELDS)
        except (KeyError, ValueError) as exc:
            raise ValueError(f"invalid pull template: {exc}") from exc
        return value

    @field_validator("prefix")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        value = "/" + value.strip("/")
        if value == "/":
            raise ValueError("prefix must not be the root path")
        return value

    @property
    def interval(self) -> float:
        """Sampling interval in seconds."""
        return self.interval_ms / 1000.0


Option = Callable[[Settings], None]


def with_interval(interval_ms: int) -> Option:
    """Set the interval of collecting and pulling metrics."""

    def apply(s: Settings) -> None:
        s.interval_ms = interval_ms

    return apply


def with_max_points(n: int) -> Option:
    """Set the maximum points of each chart series."""

    def apply(s: Settings) -> None:
        s.max_points = n

    return apply


def with_template(template: str) -> Option:
    """Replace the pull script rendered for every chart."""

    def apply(s: Settings) -> None:
        s.template = template

    return apply


def with_addr(addr: str) -> Option:
    """Set both the listening address and the link address."""

    def apply(s: Settings) -> None:
        s.listen_addr = addr
        s.link_addr = addr

    return apply


def with_link_addr(addr: str) -> Option:
    """Set the address the page links to."""

    def apply(s: Settings) -> None:
        s.link_addr = addr

    return apply


def with_time_format(fmt: str) -> Option:
    """Set the strftime pattern of the point time labels."""

    def apply(s: Settings) -> None:
        s.time_format = fmt

    return apply


def with_theme(theme: Theme | str) -> Option:
    """Set the chart theme."""

    def apply(s: Settings) -> None:
        s.theme = Theme(theme)

    return apply


def with_browser_open() -> Option:
    """Open the dashboard in a browser when the server starts."""

    def apply(s: Settings) -> None:
        s.auto_open_browser = True

    return apply


_settings: Settings | None = None


def get_settings() -> Settings:
    """Process default settings, loaded lazily from the environment."""
    global _settings
    if _settings is None:
        _settings = _load()
    return _settings


def reset_settings() -> None:
    """Drop the process default so it reloads from the environment."""
    global _settings
    _settings = None


def apply_options(settings: Settings, *options: Option) -> Settings:
    """Apply options in order on top of ``settings``."""
    for option in options:
        try:
            option(settings)
        except (ValidationError, ValueError) as exc:
            raise ConfigurationError(str(exc)) from exc
    return settings


def configure(*options: Option) -> Settings:
    """Apply options to the process default settings."""
    return apply_options(get_settings(), *options)


def build_settings(*options: Option) -> Settings:
    """Fresh settings from the environment with options applied."""
    return apply_options(_load(), *options)


def _load() -> Settings:
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc
