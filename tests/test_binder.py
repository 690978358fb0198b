import logging
import threading
from dataclasses import FrozenInstanceError

import pytest

from openapi_stub.errors import OperationNotImplementedError, ProtocolVersionError
from openapi_stub.generator import contracts
from openapi_stub.runtime import binder as binder_module
from openapi_stub.runtime.binder import (
    RequestBinder,
    context_class,
    default_binder,
    sender_name,
    wire_handler,
)
from openapi_stub.runtime.host import Request, Response


def _operation(doc, path, method):
    return doc["paths"][path][method]


def _wire(binder, operation, handler, query=None, params=None, body=None, version=1):
    response = Response()
    request = Request(query=query or {}, params=params or {}, body=body)
    binder.wire(version, operation, request, response, response.report_error, handler)
    return response


class TestNaming:
    @pytest.mark.parametrize("code, name", [(200, "send200"), ("204", "send204"), ("default", "sendDefault")])
    def test_sender_name(self, code, name):
        assert sender_name(code) == name

    def test_context_class_is_memoized(self):
        first = context_class("findPets", ("send200", "sendDefault"))
        assert context_class("findPets", ("send200", "sendDefault")) is first
        assert first.__name__ == "FindpetsContext"

    def test_context_is_frozen(self):
        cls = context_class("op", ("send200",))
        ctx = cls(parameters={}, body=None, send200=print)
        with pytest.raises(FrozenInstanceError):
            ctx.body = 1


class TestBody:
    def test_invalid_body_short_circuits(self, binder, petstore_deref):
        calls = []
        response = _wire(binder, _operation(petstore_deref, "/pets", "post"), calls.append, body={"tag": "x"})
        assert calls == []
        assert response.status_code == 422
        assert response.payload["code"] == "VALIDATION_FAILED"
        assert response.payload["details"][0]["info"] == {"missingProperty": "name"}
        assert response.errors == []

    def test_valid_body_reaches_handler(self, binder, petstore_deref):
        seen = []
        _wire(binder, _operation(petstore_deref, "/pets", "post"), seen.append, body={"name": "rex"})
        assert seen[0].body == {"name": "rex"}

    def test_optional_body_not_validated(self, binder):
        operation = {
            "operationId": "put",
            "requestBody": {"content": {"application/json": {"schema": {"type": "object"}}}},
            "responses": {},
        }
        seen = []
        _wire(binder, operation, seen.append, body="not an object")
        assert seen[0].body == "not an object"


class TestParameters:
    def test_path_parameter_coerced(self, binder, petstore_deref):
        seen = []
        _wire(binder, _operation(petstore_deref, "/pets/{id}", "get"), seen.append, params={"id": "42"})
        assert seen[0].parameters == {"id": 42}

    def test_header_not_bound(self, binder, petstore_deref):
        seen = []
        _wire(binder, _operation(petstore_deref, "/pets/{id}", "get"), seen.append, params={"id": "1"})
        assert "X-Request-ID" not in seen[0].parameters

    def test_optional_query_absent(self, binder, petstore_deref):
        seen = []
        _wire(binder, _operation(petstore_deref, "/pets", "get"), seen.append)
        assert seen[0].parameters == {"tags": None, "limit": None}

    def test_query_coerced(self, binder, petstore_deref):
        seen = []
        _wire(binder, _operation(petstore_deref, "/pets", "get"), seen.append, query={"limit": "10", "tags": ["a"]})
        assert seen[0].parameters == {"tags": ["a"], "limit": 10}

    def test_invalid_parameter(self, binder, petstore_deref):
        calls = []
        response = _wire(binder, _operation(petstore_deref, "/pets", "get"), calls.append, query={"limit": "ten"})
        assert calls == []
        assert response.status_code == 400
        assert response.payload["code"] == "INVALID_PARAMETER_VALUE"
        assert response.payload["details"][0]["path"] == "limit"

    def test_missing_required_parameter(self, binder, petstore_deref):
        calls = []
        response = _wire(binder, _operation(petstore_deref, "/pets/{id}", "get"), calls.append, params={"id": ""})
        assert calls == []
        assert response.status_code == 400
        assert response.payload["code"] == "MISSING_REQUIRED_PARAMETER"


class TestHandlers:
    def test_not_implemented(self, binder, petstore_deref):
        response = _wire(binder, _operation(petstore_deref, "/pets", "get"), None)
        assert not response.sent
        assert len(response.errors) == 1
        assert isinstance(response.errors[0], OperationNotImplementedError)
        assert str(response.errors[0]) == "Operation findPets not yet implemented."

    def test_handler_error_reported(self, binder, petstore_deref):
        def handler(ctx):
            raise RuntimeError("boom")

        response = _wire(binder, _operation(petstore_deref, "/pets", "get"), handler)
        assert [str(e) for e in response.errors] == ["boom"]

    def test_version_mismatch(self, binder, petstore_deref):
        with pytest.raises(ProtocolVersionError, match="Invalid version number: 2"):
            _wire(binder, _operation(petstore_deref, "/pets", "get"), None, version=2)

    def test_senders_match_responses(self, binder, petstore_deref):
        seen = []
        _wire(binder, _operation(petstore_deref, "/pets/{id}", "delete"), seen.append, params={"id": "3"})
        ctx = seen[0]
        assert callable(ctx.send204)
        assert callable(ctx.sendDefault)
        assert not hasattr(ctx, "send200")


class TestResponses:
    def test_send_without_schema(self, binder, petstore_deref):
        response = _wire(
            binder, _operation(petstore_deref, "/pets/{id}", "delete"), lambda ctx: ctx.send204(204, None),
            params={"id": "3"},
        )
        assert response.status_code == 204

    def test_valid_response_sent(self, binder, petstore_deref, caplog):
        with caplog.at_level(logging.WARNING, logger="openapi_stub.runtime.binder"):
            response = _wire(
                binder, _operation(petstore_deref, "/pets", "get"),
                lambda ctx: ctx.send200(200, [{"name": "rex", "id": 1}]),
            )
        assert response.status_code == 200
        assert caplog.records == []

    def test_invalid_response_still_sent_and_logged(self, binder, petstore_deref, caplog):
        with caplog.at_level(logging.WARNING, logger="openapi_stub.runtime.binder"):
            response = _wire(
                binder, _operation(petstore_deref, "/pets", "get"),
                lambda ctx: ctx.send200(200, [{"name": "rex"}]),
            )
        assert response.status_code == 200
        assert response.payload == [{"name": "rex"}]
        assert "violates its schema" in caplog.text
        assert "findPets" in caplog.text

    def test_strict_mode_replaces_invalid_response(self, petstore_deref):
        strict = RequestBinder(strict_responses=True)
        response = _wire(
            strict, _operation(petstore_deref, "/pets", "get"),
            lambda ctx: ctx.send200(200, [{"name": "rex"}]),
        )
        assert response.status_code == 500
        assert response.payload["code"] == "VALIDATION_FAILED"

    def test_strict_mode_passes_valid_response(self, petstore_deref):
        strict = RequestBinder(strict_responses=True)
        response = _wire(
            strict, _operation(petstore_deref, "/pets", "get"),
            lambda ctx: ctx.sendDefault(503, {"code": 503, "message": "down"}),
        )
        assert response.status_code == 503

    def test_schema_compiled_once(self, binder, petstore_deref):
        operation = _operation(petstore_deref, "/pets", "post")
        for _ in range(3):
            _wire(binder, operation, lambda ctx: ctx.send200(200, {"name": "a", "id": 1}), body={"name": "a"})
        # One request body schema and one response schema.
        assert len(binder.validator.cache) == 2


class TestDefaultBinder:
    def test_shared(self, monkeypatch):
        monkeypatch.setattr(binder_module, "_default_binder", None)
        assert default_binder() is default_binder()

    def test_strict_from_environment(self, monkeypatch):
        monkeypatch.setattr(binder_module, "_default_binder", None)
        monkeypatch.setenv("OPENAPI_STUB_STRICT_RESPONSES", "true")
        assert default_binder().strict_responses is True

    def test_wire_handler_uses_given_binder(self, binder, petstore_deref):
        response = Response()
        request = Request(params={"id": "x"})
        wire_handler(
            1, _operation(petstore_deref, "/pets/{id}", "get"), request, response, response.report_error, None,
            binder=binder,
        )
        assert response.status_code == 400


class TestSharedNaming:
    def test_sender_names_come_from_contracts(self):
        assert binder_module.sender_name is contracts.sender_name
        assert binder_module.json_schema_of is contracts.json_schema_of

    def test_context_fields_match_generated_senders(self, binder, petstore_deref):
        operation = _operation(petstore_deref, "/pets", "get")
        contract = contracts.build_contract(operation, "get", "/pets")
        seen = []
        _wire(binder, operation, seen.append)
        for sender in contract.senders:
            assert callable(getattr(seen[0], sender.name))


class TestExecutor:
    def test_created_once_under_contention(self):
        binder = RequestBinder()
        barrier = threading.Barrier(16)
        seen = []

        def worker():
            barrier.wait()
            seen.append(binder.executor)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        binder.shutdown()

        assert len(seen) == 16
        assert all(executor is seen[0] for executor in seen)

    def test_given_executor_is_used(self, binder):
        executor = binder.executor
        assert binder.executor is executor
        assert type(executor).__name__ == "InlineExecutor"

    def test_shutdown_without_executor(self):
        RequestBinder().shutdown()
