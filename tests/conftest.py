import sys
import types
from concurrent.futures import Executor, Future
from pathlib import Path

import pytest

from openapi_stub.generator.stub import generate_module
from openapi_stub.parser.openapi import dereference, load_document

FIXTURES = Path(__file__).parent / "fixtures"


class InlineExecutor(Executor):
    """Runs submitted work immediately so background checks finish before asserts."""

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


def load_generated(source: str, name: str = "generated_api") -> types.ModuleType:
    module = types.ModuleType(name)
    sys.modules[name] = module
    exec(compile(source, f"{name}.py", "exec"), module.__dict__)
    return module


@pytest.fixture
def petstore() -> dict:
    return load_document(FIXTURES / "petstore.yaml")


@pytest.fixture
def petstore_deref(petstore) -> dict:
    return dereference(petstore)


@pytest.fixture
def petstore_source(petstore, petstore_deref) -> str:
    return generate_module(petstore, petstore_deref)


@pytest.fixture
def petstore_module(petstore_source) -> types.ModuleType:
    return load_generated(petstore_source)


@pytest.fixture
def load_module():
    return load_generated


@pytest.fixture
def binder():
    from openapi_stub.runtime.binder import RequestBinder

    return RequestBinder(executor=InlineExecutor())
