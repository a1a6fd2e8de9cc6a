"""
Rule document loading for the rate-limit policy resolver.

Format adapters turn a JSON, INI or YAML document into an ordered list of
RuleDefinition tuples; load_from_document feeds them, in order, into a new
RuleStore. Rule-level errors (invalid quotas, unreachable rules) propagate
unchanged so a bad document aborts loading before any request is served.

JSON / YAML layout::

    {
      "rules": [
        {"operation": {"method": "GET", "ip": "*"}, "creditLimit": 10,
         "resetSeconds": 60, "actorField": "ip", "comment": "..."}
      ],
      "default": {"creditLimit": 1, "resetSeconds": 60}
    }

A bare list of rule objects is accepted as well.

INI layout, one section per rule in file order::

    [10 rpm for GET, by ip]
    operation.method = GET
    operation.ip = *
    creditLimit = 10
    resetSeconds = 60
    actorField = ip

    [default]
    creditLimit = 1
    resetSeconds = 60
"""

import configparser
import json
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

import yaml

from shared.config import RateLimitSettings, get_settings
from shared.errors import RuleLoadError
from shared.logging import get_logger
from shared.metrics import PolicyMetrics
from .rules.engine import RuleEngine
from .rules.models import RuleDefinition
from .rules.store import RuleStore

DEFAULT_SECTION = "default"
DEFAULT_COMMENT = "Default quota"
OPERATION_PREFIX = "operation."

_QUOTA_KEYS = {
    "creditLimit": "credit_limit",
    "resetSeconds": "reset_seconds",
    "actorField": "actor_field",
    "comment": "comment",
}
_RULE_KEYS = {"operation", *_QUOTA_KEYS}

SUFFIX_FORMATS = {
    ".json": "json",
    ".ini": "ini",
    ".yaml": "yaml",
    ".yml": "yaml",
}


def _reject_duplicate_keys(pairs):
    document = {}
    for key, value in pairs:
        if key in document:
            raise RuleLoadError(f"Duplicate key in rule document: {key!r}", {"key": key})
        document[key] = value
    return document


def _definition_from_mapping(entry: Any, position: str, comment: Optional[str] = None,
                             allow_operation: bool = True) -> RuleDefinition:
    """Build a RuleDefinition from one JSON/YAML rule object."""
    if not isinstance(entry, dict):
        raise RuleLoadError(
            f"Rule {position} must be an object, got {type(entry).__name__}",
            {"position": position}
        )

    allowed = _RULE_KEYS if allow_operation else set(_QUOTA_KEYS)
    unknown = sorted(str(key) for key in entry if key not in allowed)
    if unknown:
        raise RuleLoadError(
            f"Rule {position} has unknown keys: {', '.join(unknown)}",
            {"position": position, "unknown": unknown}
        )

    for required in ("creditLimit", "resetSeconds"):
        if required not in entry:
            raise RuleLoadError(
                f"Rule {position} is missing {required}",
                {"position": position, "missing": required}
            )

    operation = entry.get("operation", {})
    if operation is None:
        operation = {}

    return RuleDefinition(
        pattern=operation,
        credit_limit=entry["creditLimit"],
        reset_seconds=entry["resetSeconds"],
        actor_field=entry.get("actorField", ""),
        comment=entry.get("comment", comment if comment is not None else ""),
    )


def _definitions_from_document(document: Any) -> List[RuleDefinition]:
    """Shared structure for JSON and YAML documents."""
    default = None
    if isinstance(document, list):
        entries = document
    elif isinstance(document, dict):
        unknown = sorted(str(key) for key in document if key not in ("rules", DEFAULT_SECTION))
        if unknown:
            raise RuleLoadError(
                f"Rule document has unknown top-level keys: {', '.join(unknown)}",
                {"unknown": unknown}
            )
        entries = document.get("rules", [])
        default = document.get(DEFAULT_SECTION)
        if not isinstance(entries, list):
            raise RuleLoadError("'rules' must be a list", {"type": type(entries).__name__})
    else:
        raise RuleLoadError(
            "Rule document must be a list of rules or an object with 'rules'",
            {"type": type(document).__name__}
        )

    definitions = [
        _definition_from_mapping(entry, f"#{position}")
        for position, entry in enumerate(entries)
    ]
    if default is not None:
        definitions.append(
            _definition_from_mapping(default, DEFAULT_SECTION, DEFAULT_COMMENT, allow_operation=False)
        )
    return definitions


def parse_json(text: str) -> List[RuleDefinition]:
    """Parse a JSON rule document."""
    try:
        document = json.loads(text, object_pairs_hook=_reject_duplicate_keys)
    except json.JSONDecodeError as e:
        raise RuleLoadError(f"Invalid JSON rule document: {e}", {"line": e.lineno}) from e
    return _definitions_from_document(document)


class UniqueKeySafeLoader(yaml.SafeLoader):
    """SafeLoader that rejects mappings repeating a key."""

    def construct_mapping(self, node, deep=False):
        seen = set()
        for key_node, _ in node.value:
            if key_node.tag == "tag:yaml.org,2002:merge":
                continue
            key = self.construct_object(key_node, deep=deep)
            try:
                duplicate = key in seen
            except TypeError:
                # Unhashable keys are reported by SafeConstructor
                continue
            if duplicate:
                raise RuleLoadError(
                    f"Duplicate key in rule document: {key!r}",
                    {"key": str(key), "line": key_node.start_mark.line + 1}
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def parse_yaml(text: str) -> List[RuleDefinition]:
    """Parse a YAML rule document."""
    try:
        document = yaml.load(text, Loader=UniqueKeySafeLoader)
    except yaml.YAMLError as e:
        raise RuleLoadError(f"Invalid YAML rule document: {e}") from e
    if document is None:
        return []
    return _definitions_from_document(document)


def parse_ini(text: str) -> List[RuleDefinition]:
    """Parse an INI rule document; sections are rules in file order."""
    parser = configparser.ConfigParser(interpolation=None, strict=True)
    parser.optionxform = str  # keep field names case-sensitive
    try:
        parser.read_string(text)
    except configparser.Error as e:
        raise RuleLoadError(f"Invalid INI rule document: {e}") from e

    if parser.defaults():
        raise RuleLoadError(
            f"[{parser.default_section}] is not supported; declare the catch-all as [{DEFAULT_SECTION}]"
        )

    definitions = []
    default = None
    for section in parser.sections():
        pattern: Dict[str, str] = {}
        quota: Dict[str, str] = {}
        for key, value in parser.items(section):
            if key.startswith(OPERATION_PREFIX):
                field_name = key[len(OPERATION_PREFIX):]
                if not field_name:
                    raise RuleLoadError(f"[{section}] has an empty operation field name", {"section": section})
                pattern[field_name] = value
            elif key in _QUOTA_KEYS:
                quota[_QUOTA_KEYS[key]] = value
            else:
                raise RuleLoadError(
                    f"[{section}] has unknown key {key!r}; pattern fields are written {OPERATION_PREFIX}<field>",
                    {"section": section, "key": key}
                )

        for required in ("credit_limit", "reset_seconds"):
            if required not in quota:
                raise RuleLoadError(f"[{section}] is missing a quota value", {"section": section, "missing": required})

        is_default = section == DEFAULT_SECTION
        if is_default and pattern:
            raise RuleLoadError(f"[{DEFAULT_SECTION}] must not declare operation fields")

        definition = RuleDefinition(
            pattern=pattern,
            credit_limit=quota["credit_limit"],
            reset_seconds=quota["reset_seconds"],
            actor_field=quota.get("actor_field", ""),
            comment=quota.get("comment", DEFAULT_COMMENT if is_default else section),
        )
        if is_default:
            default = definition
        else:
            definitions.append(definition)

    if default is not None:
        definitions.append(default)
    return definitions


PARSERS: Dict[str, Callable[[str], List[RuleDefinition]]] = {
    "json": parse_json,
    "ini": parse_ini,
    "yaml": parse_yaml,
}


def load_from_document(definitions: Iterable[Union[RuleDefinition, Sequence[Any]]],
                       name: str = "default",
                       metrics: Optional[PolicyMetrics] = None) -> RuleStore:
    """Build a store from adapter output, preserving declaration order."""
    store = RuleStore(name=name, metrics=metrics)
    for definition in definitions:
        if not isinstance(definition, RuleDefinition):
            definition = RuleDefinition(*definition)
        store.add_rule(
            definition.pattern,
            definition.credit_limit,
            definition.reset_seconds,
            definition.actor_field,
            definition.comment,
        )
    return store


def detect_format(path: Path, fmt: Optional[str] = None) -> str:
    if fmt:
        fmt = fmt.lower()
        if fmt not in PARSERS:
            raise RuleLoadError(f"Unsupported rule document format: {fmt}", {"format": fmt})
        return fmt

    detected = SUFFIX_FORMATS.get(path.suffix.lower())
    if detected is None:
        raise RuleLoadError(
            f"Cannot infer rule document format from {path.name}; use one of {', '.join(sorted(SUFFIX_FORMATS))}",
            {"path": str(path)}
        )
    return detected


def load_from_file(path: Union[str, Path], fmt: Optional[str] = None, name: Optional[str] = None,
                   require_catch_all: bool = False,
                   metrics: Optional[PolicyMetrics] = None) -> RuleStore:
    """Read and parse a rule document into a new store."""
    path = Path(path)
    fmt = detect_format(path, fmt)

    logger = get_logger("ratelimit.loader")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Rule document read failed", path=str(path), error=str(e))
        raise RuleLoadError(f"Failed to read rule document {path}: {e}", {"path": str(path)}) from e

    definitions = PARSERS[fmt](text)
    store = load_from_document(definitions, name=name or path.stem, metrics=metrics)

    if not store.has_catch_all():
        if require_catch_all:
            raise RuleLoadError(
                f"{path} does not end with an empty-pattern catch-all rule",
                {"path": str(path)}
            )
        logger.warning("Rule document has no catch-all rule", path=str(path), store=store.name)

    logger.info("Rule document loaded", path=str(path), format=fmt, store=store.name, rule_count=len(store))
    return store


def load_engine(settings: Optional[RateLimitSettings] = None,
                metrics: Optional[PolicyMetrics] = None) -> RuleEngine:
    """Build a serving engine from the configured rule document."""
    settings = settings or get_settings()
    if not settings.rate_limits_file:
        raise RuleLoadError("No rule document configured; set RATELIMIT_RATE_LIMITS_FILE")

    store = load_from_file(
        settings.rate_limits_file,
        fmt=settings.rate_limits_format,
        name=settings.store_name,
        require_catch_all=settings.require_catch_all,
        metrics=metrics,
    )
    return RuleEngine(store, metrics=metrics)
