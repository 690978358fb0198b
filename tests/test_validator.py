from openapi_stub.generator.validator import validate_files, validate_python, validate_registration

COMPLETE = (
    "from typing import TypedDict\n\n"
    "class Handlers(TypedDict, total=False):\n    pass\n\n"
    "def register_handlers(router, handlers, binder=None):\n    pass\n"
)


class TestValidatePython:
    def test_valid_code(self):
        errors = validate_python({"api.py": "import os\nx = 1\n"})
        assert errors == {}

    def test_syntax_error(self):
        errors = validate_python({"api.py": "def foo(\n"})
        assert "api.py" in errors
        assert "SyntaxError" in errors["api.py"]

    def test_skips_non_python(self):
        errors = validate_python({"data.yaml": "key: [", "api.py": "x = 1"})
        assert errors == {}

    def test_skips_empty(self):
        errors = validate_python({"api.py": ""})
        assert errors == {}


class TestValidateRegistration:
    def test_complete_module(self):
        assert validate_registration({"api.py": COMPLETE}) == {}

    def test_missing_register_handlers(self):
        errors = validate_registration({"api.py": "class Handlers:\n    pass\n"})
        assert errors["api.py"] == "Missing definitions: register_handlers"

    def test_missing_both(self):
        errors = validate_registration({"api.py": "x = 1\n"})
        assert errors["api.py"] == "Missing definitions: Handlers, register_handlers"

    def test_assigned_handlers(self):
        source = "Handlers = dict\ndef register_handlers(router, handlers):\n    pass\n"
        assert validate_registration({"api.py": source}) == {}


class TestValidateFiles:
    def test_generated_module(self, petstore_source):
        assert validate_files({"api.py": petstore_source}) == {}

    def test_syntax_error_stops_structure_checks(self):
        errors = validate_files({"api.py": "def foo(\n"})
        assert errors["api.py"].startswith("SyntaxError")

    def test_structure_error(self):
        errors = validate_files({"api.py": "x = 1\n"})
        assert "Missing definitions" in errors["api.py"]
