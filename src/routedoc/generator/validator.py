"""Validates a generated OpenAPI document for structural consistency."""

import re

import yaml

TEMPLATE_PARAM = re.compile(r"\{([^}/]+)\}")
OPERATION_KEYS = ("get", "post", "put", "delete", "patch", "head", "options", "trace")


def validate_path_parameters(document: dict) -> dict[str, str]:
    """Check that every ``{name}`` in a path has a matching path parameter.

    Returns dict of {"METHOD /path": error_message} for operations with errors.
    """
    errors = {}
    for path, item in document.get("paths", {}).items():
        expected = set(TEMPLATE_PARAM.findall(path))
        for method in OPERATION_KEYS:
            operation = item.get(method)
            if operation is None:
                continue
            declared = {p["name"] for p in operation.get("parameters", []) if p.get("in") == "path"}
            problems = []
            if expected - declared:
                problems.append(f"undeclared path parameters: {', '.join(sorted(expected - declared))}")
            if declared - expected:
                problems.append(f"path parameters not in template: {', '.join(sorted(declared - expected))}")
            if problems:
                errors[f"{method.upper()} {path}"] = "; ".join(problems)
    return errors


def validate_yaml(document: dict) -> dict[str, str]:
    """Check that the document can be dumped as plain YAML.

    Returns {"_document": error_message} when PyYAML rejects it.
    """
    try:
        yaml.safe_dump(document, sort_keys=False)
    except yaml.YAMLError as e:
        return {"_document": f"YAMLError: {e}"}
    return {}


def validate_document(document: dict) -> dict[str, str]:
    """Run all validations on a generated document.

    Returns dict of {location: error_message} for all problems found.
    """
    errors = {}
    errors.update(validate_path_parameters(document))
    errors.update(validate_yaml(document))
    return errors
