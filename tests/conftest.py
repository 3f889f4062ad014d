"""
Shared fixtures for the request pipeline tests.
"""

from datetime import timedelta

import pytest

from zap_http.services.cache import ResultCache
from zap_http.services.cache_control import CacheDefaults
from zap_http.settings import HttpConfig


@pytest.fixture
def http_config():
    return HttpConfig(
        timeout=1.0,
        max_attempts=2,
        retry_delay=1.0,
        services={"backend_api": "http://backend.test", "debank": "http://debank.test/"},
    )


@pytest.fixture
def result_cache():
    return ResultCache(fresh_for=timedelta(minutes=5), retain_for=timedelta(minutes=10))


@pytest.fixture
def cache_defaults(result_cache):
    return CacheDefaults(result_cache)
