import os
import textwrap
from typing import Any, Callable, Dict, Optional

import pytest
from fastapi.testclient import TestClient

from mockable.api.main import app
from mockable.core.compiler import generate_mock, scan_source
from mockable.core.config import GeneratorOptions
from mockable.core.generators.module_gen import render_mock_module
from mockable.core.observability.metrics import reset_metrics


@pytest.fixture(scope="session", autouse=True)
def _force_test_env():
    # Make generation deterministic in tests: dual lock emission unless a test opts out
    os.environ.setdefault("MOCKABLE_LOG_LEVEL", "INFO")
    os.environ.setdefault("MOCKABLE_FORCE_PORTABLE_LOCK", "0")


@pytest.fixture(autouse=True)
def _clean_metrics():
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture()
def client():
    return TestClient(app)


def _build_mocks(
    source: str,
    *,
    force_portable_lock: Optional[bool] = None,
    module: str = "mock_under_test",
) -> Dict[str, Any]:
    """
    Exec the protocol source, generate every marked mock and exec the
    generated code into the same namespace. Returns the namespace.
    """
    source = textwrap.dedent(source)
    namespace: Dict[str, Any] = {"__name__": module}
    exec(compile(source, f"{module}.py", "exec"), namespace)

    scanned = scan_source(source, module)
    results = []
    for decl in scanned.declarations:
        portable = decl.force_portable_lock if force_portable_lock is None else force_portable_lock
        result = generate_mock(
            decl.node,
            GeneratorOptions(force_portable_lock=bool(portable)),
            module_type_vars=scanned.type_vars,
        )
        assert result.ok, [d.message for d in result.diagnostics]
        results.append(result)

    # protocols already live in the namespace, so no import-back block
    generated = render_mock_module(module, results, scanned.imports, [])
    exec(compile(generated, f"{module}_mocks.py", "exec"), namespace)
    return namespace


@pytest.fixture()
def build_mocks() -> Callable[..., Dict[str, Any]]:
    return _build_mocks
