"""
Smoke test that every module imports.
"""

import importlib

import pytest

MODULES = [
    "credit_usage",
    "credit_usage.log",
    "credit_usage.cli.main",
    "credit_usage.config.loader",
    "credit_usage.core.bucketing",
    "credit_usage.core.clock",
    "credit_usage.core.migration",
    "credit_usage.core.series",
    "credit_usage.core.state",
    "credit_usage.sdk",
    "credit_usage.storage.db",
    "credit_usage.storage.kv_store",
    "credit_usage.storage.models",
    "credit_usage.storage.repository",
]


@pytest.mark.parametrize("name", MODULES)
def test_module_imports(name):
    assert importlib.import_module(name) is not None


def test_version():
    import credit_usage
    assert credit_usage.__version__ == "0.1.0"
