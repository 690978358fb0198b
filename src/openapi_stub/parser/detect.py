"""Auto-detect the flavor of an API description document."""

import json

import yaml


def detect_format(text: str) -> str:
    """Detect whether a document is OpenAPI 3 or Swagger 2.0.

    Returns: 'openapi', 'swagger', or 'unknown'.
    """
    data = None
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError:
        # Try JSON specifically (for files not parseable as YAML)
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, ValueError):
            return "unknown"

    if isinstance(data, dict):
        if "openapi" in data:
            return "openapi"
        if "swagger" in data:
            return "swagger"
    return "unknown"
