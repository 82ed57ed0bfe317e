"""
Configuration for the single-page analyzer.
Defaults mirror the limits of the hosted scanner; a few values can be
overridden from PRONET_* environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


DEFAULT_USER_AGENT = 'ProNetAnalyzer/4.0 (Study Project)'


@dataclass
class FetchConfig:
    attempts: int = 3
    timeout: float = 15.0
    backoff: float = 0.5
    max_page_size: int = 5 * 1024 * 1024


@dataclass
class ScriptConfig:
    max_external: int = 10
    batch_size: int = 3
    stagger: float = 0.5
    timeout: float = 4.0
    max_size: int = 5 * 1024 * 1024
    max_beautify_size: int = 512 * 1024
    skip_common_libraries: bool = False


@dataclass
class SpecialFilesConfig:
    enabled: bool = True
    timeout: float = 5.0
    max_nested_sitemaps: int = 3
    max_sitemap_files: int = 10
    max_size: int = 5 * 1024 * 1024


@dataclass
class DynamicConfig:
    enabled: bool = True
    headless: bool = True
    navigation_timeout_ms: int = 15000
    quiet_period: float = 1.5
    settle_timeout: float = 5.0
    poll_interval: float = 0.25
    max_events: int = 500


@dataclass
class Config:
    deadline: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT
    content_cap: int = 200
    network_cap: int = 150
    context_before: int = 50
    context_after: int = 150
    max_matches_per_source: int = 500
    fetch: FetchConfig = field(default_factory=FetchConfig)
    scripts: ScriptConfig = field(default_factory=ScriptConfig)
    special_files: SpecialFilesConfig = field(default_factory=SpecialFilesConfig)
    dynamic: DynamicConfig = field(default_factory=DynamicConfig)
    output_file: Optional[str] = None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def get_default_config() -> Config:
    config = Config()
    config.deadline = _env_float('PRONET_DEADLINE', config.deadline)
    config.user_agent = os.getenv('PRONET_USER_AGENT', config.user_agent)
    config.fetch.attempts = max(1, _env_int('PRONET_FETCH_ATTEMPTS', config.fetch.attempts))
    config.scripts.max_external = _env_int('PRONET_MAX_SCRIPTS', config.scripts.max_external)
    config.dynamic.enabled = _env_bool('PRONET_DYNAMIC', config.dynamic.enabled)
    return config
