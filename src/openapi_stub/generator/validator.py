"""Validates generated modules for syntax and structural correctness."""

import ast


def validate_python(files: dict[str, str]) -> dict[str, str]:
    """Check Python files for syntax errors.

    Returns dict of {filename: error_message} for files with errors.
    """
    errors = {}
    for filename, content in files.items():
        if not filename.endswith(".py"):
            continue
        if not content.strip():
            continue
        try:
            ast.parse(content, filename=filename)
        except SyntaxError as e:
            errors[filename] = f"SyntaxError: {e.msg} (line {e.lineno})"
    return errors


def validate_registration(files: dict[str, str]) -> dict[str, str]:
    """Check that every generated module defines register_handlers and Handlers.

    Returns dict of {filename: error_message} for files missing either.
    """
    errors = {}
    for filename, content in files.items():
        if not filename.endswith(".py") or not content.strip():
            continue
        tree = ast.parse(content, filename=filename)
        defined = set()
        for node in tree.body:
            if isinstance(node, (ast.FunctionDef, ast.ClassDef)):
                defined.add(node.name)
            elif isinstance(node, ast.Assign):
                defined.update(t.id for t in node.targets if isinstance(t, ast.Name))
        missing = sorted({"register_handlers", "Handlers"} - defined)
        if missing:
            errors[filename] = "Missing definitions: " + ", ".join(missing)
    return errors


def validate_files(files: dict[str, str]) -> dict[str, str]:
    """Run all validations on generated files.

    Structure checks only run once the syntax check passes.
    """
    errors = validate_python(files)
    if not errors:
        errors.update(validate_registration(files))
    return errors
