"""User-defined query templates with ``{{placeholder}}`` substitution."""

from __future__ import annotations

import dataclasses
import logging
import re
from collections.abc import Mapping, Sequence

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{\{([^}]+)\}\}")
_INDEXER_RE = re.compile(r"^(\w+)\[(\d+)\]$")
_SEPARATOR_RE = re.compile(r"[\n\r;]+")
_MULTI_SPACE_RE = re.compile(r"\s{2,}")
_MAX_DEPTH = 3
# Never substituted into search text: settings carry the API key.
_PRIVATE_ATTRIBUTES = frozenset({"settings", "processed_searches"})


def parse_templates(config):
    if not config or not str(config).strip():
        return []
    templates = []
    for line in _SEPARATOR_RE.split(str(config)):
        line = line.strip()
        if not line or line.startswith("#") or line.startswith("//"):
            continue
        templates.append(line)
    return templates


def _attribute_names(target):
    if isinstance(target, type):
        names = {f.name for f in dataclasses.fields(target)} if dataclasses.is_dataclass(target) else set()
        names.update(name for name, value in vars(target).items() if isinstance(value, property))
        return names
    if isinstance(target, Mapping):
        return {str(key) for key in target}
    return _attribute_names(type(target))


def _lookup_name(target, name):
    wanted = name.strip().lower()
    for candidate in _attribute_names(target):
        if candidate in _PRIVATE_ATTRIBUTES:
            continue
        if candidate.lower() == wanted:
            return candidate
    return None


def _get_value(obj, name):
    attr = _lookup_name(obj, name)
    if attr is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(attr)
    return getattr(obj, attr, None)


def _get_indexed(value, index):
    if isinstance(value, (str, bytes)) or value is None:
        return None
    if isinstance(value, Sequence):
        return value[index] if index < len(value) else None
    try:
        return list(value)[index]
    except (TypeError, IndexError):
        return None


def resolve_path(obj, path):
    if obj is None or not path or not path.strip():
        return None
    current = obj
    for segment in path.strip().split(".")[:_MAX_DEPTH]:
        if current is None:
            break
        indexed = _INDEXER_RE.match(segment.strip())
        if indexed:
            current = _get_indexed(_get_value(current, indexed.group(1)), int(indexed.group(2)))
        else:
            current = _get_value(current, segment)
    return current


def apply_template(template, context):
    """Fill every placeholder from ``context``; None when any is unresolved."""
    if not template or not template.strip() or context is None:
        return None
    unresolved = []

    def _replace(match):
        value = resolve_path(context, match.group(1))
        if value is None or (isinstance(value, str) and not value.strip()):
            unresolved.append(match.group(1).strip())
            return ""
        return str(value)

    result = _PLACEHOLDER_RE.sub(_replace, template)
    if unresolved:
        logger.debug("Template '%s' has unresolved placeholders: %s", template, unresolved)
        return None
    result = _MULTI_SPACE_RE.sub(" ", result).strip()
    return result or None


def _validate_path(root_type, path):
    if not path:
        return "empty path"
    current = root_type
    for segment in path.split(".")[:_MAX_DEPTH]:
        if current is None:
            return "cannot resolve deeper"
        indexed = _INDEXER_RE.match(segment)
        name = indexed.group(1) if indexed else segment
        attr = _lookup_name(current, name)
        if attr is None:
            return f"unknown property '{name}'"
        current = _nested_type(current, attr)
    return None


def _nested_type(owner, attr):
    if not dataclasses.is_dataclass(owner):
        return None
    for f in dataclasses.fields(owner):
        if f.name == attr and f.default_factory is not dataclasses.MISSING:
            produced = f.default_factory
            if isinstance(produced, type) and dataclasses.is_dataclass(produced):
                return produced
    return None


def validate_templates(config, root_type):
    errors = []
    for number, template in enumerate(parse_templates(config), start=1):
        matches = list(_PLACEHOLDER_RE.finditer(template))
        if not matches:
            errors.append(f"Line {number}: No placeholders found (use {{{{property}}}})")
            continue
        for match in matches:
            path = match.group(1).strip()
            error = _validate_path(root_type, path)
            if error:
                errors.append(f"Line {number}: '{path}' - {error}")
    return errors
