"""
Declarative rule compiler.

Turns a mapping of ``field -> rule`` into a pydantic model class that the
validation engine runs against one request section. A rule is either a
shorthand string (``"string|optional|min:3"``), a dict carrying a ``type``
key, or a dict without ``type`` describing a nested object's props.

Custom checker functions cannot run inside pydantic (they may be
asynchronous), so the compiler collects them separately together with the
field path they apply to.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Callable, Dict, List, Literal, NamedTuple, Optional, Tuple, Type
from uuid import UUID

from pydantic import AnyUrl, BaseModel, ConfigDict, Field, conint, confloat, conlist, constr, create_model

from request_guard.utils.exceptions import SchemaDefinitionError


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

SCALAR_TYPES: Dict[str, Any] = {
    "any": Any,
    "boolean": bool,
    "date": datetime,
    "url": AnyUrl,
    "uuid": UUID,
}

STRICT_KEY = "$$strict"


class CustomCheck(NamedTuple):
    """A custom checker function bound to the field path it validates."""

    path: Tuple[str, ...]
    rule: Dict[str, Any]
    checker: Callable


class CompiledSchema(NamedTuple):
    """Result of compiling one single-section schema."""

    model: Type[BaseModel]
    checks: List[CustomCheck]
    messages: Dict[str, Dict[str, str]]


def _coerce_modifier(value: str) -> Any:
    if value in ("true", "false"):
        return value == "true"
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value


def parse_shorthand(rule: str, field: Optional[str] = None) -> Dict[str, Any]:
    """
    Parse a shorthand rule such as ``"number|optional|min:1|max:100"``.

    The first segment is the type; bare segments set a flag to True and
    ``key:value`` segments set a typed value.
    """
    segments = [segment.strip() for segment in rule.split("|")]
    if not segments[0]:
        raise SchemaDefinitionError("Shorthand rule is missing a type", field=field, rule=rule)

    parsed: Dict[str, Any] = {"type": segments[0]}
    for segment in segments[1:]:
        if not segment:
            continue
        if ":" in segment:
            key, _, value = segment.partition(":")
            parsed[key.strip()] = _coerce_modifier(value.strip())
        else:
            parsed[segment] = True
    return parsed


def normalize_rule(rule: Any, field: Optional[str] = None) -> Dict[str, Any]:
    """Return the dict form of ``rule``."""
    if isinstance(rule, str):
        return parse_shorthand(rule, field)
    if isinstance(rule, Mapping):
        if "type" in rule:
            return dict(rule)
        return {"type": "object", "props": rule}
    raise SchemaDefinitionError(
        f"Rule for '{field}' must be a string or a mapping",
        field=field,
        rule=rule
    )


def is_model_class(schema: Any) -> bool:
    return isinstance(schema, type) and issubclass(schema, BaseModel)


class RuleCompiler:
    """Compiles nested rule mappings into pydantic models."""

    def __init__(self, strict: bool = False, extra: str = "ignore"):
        self.strict = strict
        self.extra = extra
        self.checks: List[CustomCheck] = []
        self.messages: Dict[str, Dict[str, str]] = {}
        self._array_depth = 0
        self._model_count = 0

    def compile(self, schema: Mapping) -> CompiledSchema:
        model = self.object_model(schema, ())
        return CompiledSchema(model=model, checks=self.checks, messages=self.messages)

    def object_model(
        self,
        props: Mapping,
        path: Tuple[str, ...],
        strict_flag: Any = None
    ) -> Type[BaseModel]:
        extra = self.extra
        strict_marker = props.get(STRICT_KEY, strict_flag)
        if strict_marker is True:
            extra = "forbid"
        elif strict_marker is False or strict_marker == "remove":
            extra = "ignore"

        fields: Dict[str, Any] = {}
        for index, (key, raw_rule) in enumerate(props.items()):
            if key == STRICT_KEY:
                continue
            if not isinstance(key, str):
                raise SchemaDefinitionError("Field names must be strings", rule=key)

            field_path = path + (key,)
            rule = normalize_rule(raw_rule, ".".join(field_path))
            annotation, default = self.field(rule, field_path)
            # Aliases keep header names such as "x-api-key" usable as keys.
            fields[f"field_{index}"] = (annotation, Field(default, alias=key))

        self._model_count += 1
        name = "_".join(("Schema",) + path) if path else "Schema"
        config = ConfigDict(extra=extra, strict=self.strict)
        return create_model(f"{name}_{self._model_count}", __config__=config, **fields)

    def field(self, rule: Dict[str, Any], path: Tuple[str, ...]) -> Tuple[Any, Any]:
        dotted = ".".join(path)
        annotation = self.annotation(rule, path)

        if rule.get("nullable"):
            annotation = Optional[annotation]

        if "custom" in rule:
            if not callable(rule["custom"]):
                raise SchemaDefinitionError("Custom checker must be callable", field=dotted)
            if self._array_depth:
                raise SchemaDefinitionError(
                    "Custom checkers are not supported inside array items",
                    field=dotted
                )
            self.checks.append(CustomCheck(path=path, rule=rule, checker=rule["custom"]))

        if "messages" in rule:
            self.messages[dotted] = dict(rule["messages"])

        if "default" in rule:
            return annotation, rule["default"]
        if rule.get("optional"):
            return Optional[annotation], None
        return annotation, ...

    def annotation(self, rule: Dict[str, Any], path: Tuple[str, ...]) -> Any:
        rule_type = rule.get("type")
        dotted = ".".join(path)

        if rule_type in ("string", "email"):
            return self._string(rule, dotted)
        if rule_type == "number":
            return self._number(rule)
        if rule_type == "object":
            props = rule.get("props")
            if props is None:
                return Dict[str, Any]
            if not isinstance(props, Mapping):
                raise SchemaDefinitionError("Object props must be a mapping", field=dotted, rule=props)
            return self.object_model(props, path, rule.get("strict"))
        if rule_type == "array":
            return self._array(rule, path)
        if rule_type == "enum":
            values = rule.get("values")
            if not values or isinstance(values, (str, bytes)):
                raise SchemaDefinitionError("Enum rule needs a non-empty 'values' list", field=dotted)
            return Literal[tuple(values)]
        if rule_type == "equal":
            if "value" not in rule:
                raise SchemaDefinitionError("Equal rule needs a 'value'", field=dotted)
            return Literal[rule["value"]]
        if rule_type in SCALAR_TYPES:
            return SCALAR_TYPES[rule_type]

        raise SchemaDefinitionError(f"Unknown rule type '{rule_type}'", field=dotted, rule=rule)

    def _string(self, rule: Dict[str, Any], dotted: str) -> Any:
        constraints: Dict[str, Any] = {}
        if "length" in rule:
            constraints["min_length"] = constraints["max_length"] = rule["length"]
        if "min" in rule:
            constraints["min_length"] = rule["min"]
        if "max" in rule:
            constraints["max_length"] = rule["max"]
        if rule.get("empty") is False:
            constraints["min_length"] = max(1, constraints.get("min_length", 0))
        if rule["type"] == "email":
            constraints["pattern"] = EMAIL_PATTERN
        elif "pattern" in rule:
            constraints["pattern"] = rule["pattern"]

        for key in ("min_length", "max_length"):
            if key in constraints and not isinstance(constraints[key], int):
                raise SchemaDefinitionError(f"String '{key}' must be an integer", field=dotted)

        return constr(**constraints) if constraints else str

    def _number(self, rule: Dict[str, Any]) -> Any:
        constraints: Dict[str, Any] = {}
        if "min" in rule:
            constraints["ge"] = rule["min"]
        if "max" in rule:
            constraints["le"] = rule["max"]
        if rule.get("positive"):
            constraints["gt"] = 0
        if rule.get("negative"):
            constraints["lt"] = 0
        if "equal" in rule:
            constraints["ge"] = constraints["le"] = rule["equal"]

        if rule.get("integer"):
            return conint(**constraints) if constraints else int
        return confloat(**constraints) if constraints else float

    def _array(self, rule: Dict[str, Any], path: Tuple[str, ...]) -> Any:
        items = rule.get("items")
        self._array_depth += 1
        try:
            if items is None:
                item_annotation = Any
            else:
                item_rule = normalize_rule(items, ".".join(path) + "[]")
                item_annotation, _ = self.field(item_rule, path)
        finally:
            self._array_depth -= 1

        constraints: Dict[str, Any] = {}
        if "min" in rule:
            constraints["min_length"] = rule["min"]
        if "max" in rule:
            constraints["max_length"] = rule["max"]
        if rule.get("empty") is False:
            constraints["min_length"] = max(1, constraints.get("min_length", 0))

        return conlist(item_annotation, **constraints)


def compile_schema(schema: Any, strict: bool = False, extra: str = "ignore") -> CompiledSchema:
    """
    Compile a single-section schema.

    Args:
        schema: A pydantic model class or a mapping of field rules
        strict: Run pydantic in strict mode (no type coercion)
        extra: Policy for undeclared fields (ignore, allow, forbid)

    Returns:
        The compiled model with its custom checks and message overrides
    """
    if is_model_class(schema):
        return CompiledSchema(model=schema, checks=[], messages={})
    if not isinstance(schema, Mapping):
        raise SchemaDefinitionError(
            "Schema must be a mapping of field rules or a pydantic model class",
            rule=schema
        )
    return RuleCompiler(strict=strict, extra=extra).compile(schema)
