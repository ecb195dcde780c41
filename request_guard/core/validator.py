"""
Validation engine.

``SchemaValidator.validate(value, schema)`` checks one value against one
single-section schema and returns ``True`` or a list of error entries.
Structural checks run through pydantic; custom checker functions run
afterwards and may be coroutines, which is why ``validate`` is async.
"""

import inspect
import logging
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from request_guard.core.rules import CompiledSchema, CustomCheck, compile_schema, is_model_class
from request_guard.schemas.common import ErrorEntry, ValidationOutcome


logger = logging.getLogger(__name__)

ROOT_FIELD = "value"

DEFAULT_MESSAGES: Dict[str, str] = {
    "missing": "The '{field}' field is required.",
    "extra_forbidden": "The '{field}' field is not allowed.",
    "custom": "The '{field}' field fails the custom check.",
}

FALLBACK_MESSAGE = "The '{field}' field is invalid: {msg}."

CUSTOM_FALLBACK_MESSAGE = "The '{field}' field fails the '{type}' check."

_MISSING = object()


class ValidatorOptions(BaseModel):
    """Options accepted by :class:`SchemaValidator`."""

    model_config = ConfigDict(extra="forbid")

    use_new_custom_checker_function: bool = Field(
        False, description="Call custom checkers as (value, errors, rule, path, parent, context)"
    )
    halt_on_first_error: bool = Field(False, description="Report only the first error")
    messages: Dict[str, str] = Field(
        default_factory=dict, description="Message templates keyed by error type"
    )
    strict: bool = Field(False, description="Disable type coercion")
    extra: Literal["ignore", "allow", "forbid"] = Field(
        "ignore", description="Policy for undeclared fields"
    )


class _TemplateContext(dict):
    def __missing__(self, key):
        return "{" + key + "}"


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    return str(value)


def merge_validator_options(
    validator_options: Optional[Union[ValidatorOptions, Mapping[str, Any]]] = None
) -> ValidatorOptions:
    """
    Merge caller options over the middleware defaults.

    The middleware enables the new custom checker signature; options the
    caller sets explicitly take precedence, that one included.
    """
    if validator_options is None:
        overrides: Dict[str, Any] = {}
    elif isinstance(validator_options, ValidatorOptions):
        overrides = validator_options.model_dump(exclude_unset=True)
    else:
        overrides = ValidatorOptions.model_validate(dict(validator_options)).model_dump(
            exclude_unset=True
        )

    return ValidatorOptions(**{"use_new_custom_checker_function": True, **overrides})


class SchemaValidator:
    """
    Validates values against declarative schemas or pydantic models.

    Instances hold no per-value state. With ``cache_compiled=True`` compiled
    models are memoized per schema object, which is safe because compiled
    models never change after construction.
    """

    def __init__(self, options: Optional[ValidatorOptions] = None, cache_compiled: bool = False):
        self.options = options or ValidatorOptions()
        self._compiled: Optional[Dict[int, Tuple[Any, CompiledSchema]]] = {} if cache_compiled else None

    def compile(self, schema: Any) -> CompiledSchema:
        """Compile ``schema``, reusing a previous result when caching is on."""
        if self._compiled is None:
            return compile_schema(schema, strict=self.options.strict, extra=self.options.extra)

        cached = self._compiled.get(id(schema))
        if cached is not None and cached[0] is schema:
            return cached[1]

        compiled = compile_schema(schema, strict=self.options.strict, extra=self.options.extra)
        logger.debug(f"Compiled schema into {compiled.model.__name__}")
        # Keep a reference to the schema so its id cannot be reused.
        self._compiled[id(schema)] = (schema, compiled)
        return compiled

    async def validate(self, value: Any, schema: Any) -> ValidationOutcome:
        """
        Validate ``value`` against ``schema``.

        Args:
            value: The request section to check
            schema: A rule mapping or a pydantic model class

        Returns:
            True on success, otherwise a non-empty list of error entries
        """
        compiled = self.compile(schema)
        errors: List[ErrorEntry] = []
        data = value

        try:
            instance = compiled.model.model_validate(value)
        except ValidationError as exc:
            errors.extend(self._format_validation_errors(exc, compiled))
        else:
            if not is_model_class(schema):
                data = instance.model_dump(by_alias=True, exclude_unset=True)

        if errors and self.options.halt_on_first_error:
            return errors[:1]

        if compiled.checks and not any(entry["field"] == ROOT_FIELD for entry in errors):
            failed_fields = [entry["field"] for entry in errors]
            errors.extend(await self._run_custom_checks(compiled, data, failed_fields))

        if not errors:
            return True
        if self.options.halt_on_first_error:
            return errors[:1]
        return errors

    def _message(
        self,
        compiled: CompiledSchema,
        field: str,
        error_type: str,
        fallback: str,
        context: Dict[str, Any]
    ) -> str:
        template = (
            compiled.messages.get(field, {}).get(error_type)
            or self.options.messages.get(error_type)
            or DEFAULT_MESSAGES.get(error_type)
            or fallback
        )
        return template.format_map(_TemplateContext(context))

    def _format_validation_errors(
        self,
        exc: ValidationError,
        compiled: CompiledSchema
    ) -> List[ErrorEntry]:
        """Convert pydantic errors into engine error entries."""
        entries = []
        for error in exc.errors(include_url=False):
            field = ".".join(str(part) for part in error["loc"]) or ROOT_FIELD
            actual = None if error["type"] == "missing" else error.get("input")
            context = {
                **error.get("ctx", {}),
                "field": field,
                "msg": error["msg"],
                "type": error["type"],
                "actual": actual,
            }
            entries.append({
                "type": error["type"],
                "field": field,
                "message": self._message(compiled, field, error["type"], FALLBACK_MESSAGE, context),
                "actual": _jsonable(actual),
            })
        return entries

    async def _run_custom_checks(
        self,
        compiled: CompiledSchema,
        data: Any,
        failed_fields: List[str]
    ) -> List[ErrorEntry]:
        entries: List[ErrorEntry] = []
        context = {"data": data}

        for check in compiled.checks:
            field = ".".join(check.path)
            if any(
                field == failed or field.startswith(failed + ".") or failed.startswith(field + ".")
                for failed in failed_fields
            ):
                continue

            parent, value = self._resolve(data, check.path)
            if value is _MISSING:
                continue

            raw_errors = await self._call_checker(check, value, field, parent, context)
            for raw in raw_errors:
                entries.append(self._custom_entry(compiled, field, value, raw))
                if self.options.halt_on_first_error:
                    return entries

        return entries

    async def _call_checker(
        self,
        check: CustomCheck,
        value: Any,
        field: str,
        parent: Any,
        context: Dict[str, Any]
    ) -> List[Any]:
        if self.options.use_new_custom_checker_function:
            errors: List[Any] = []
            result = check.checker(value, errors, check.rule, field, parent, context)
            if inspect.isawaitable(result):
                await result
            return errors

        result = check.checker(value, check.rule)
        if inspect.isawaitable(result):
            result = await result
        if result is True:
            return []
        if isinstance(result, list):
            return result
        return [{"type": "custom"}]

    def _custom_entry(
        self,
        compiled: CompiledSchema,
        field: str,
        value: Any,
        raw: Any
    ) -> ErrorEntry:
        if isinstance(raw, str):
            raw = {"type": "custom", "message": raw}
        elif not isinstance(raw, Mapping):
            raw = {"type": "custom"}

        error_type = raw.get("type", "custom")
        actual = raw.get("actual", value)
        message = raw.get("message") or self._message(
            compiled,
            field,
            error_type,
            CUSTOM_FALLBACK_MESSAGE,
            {**raw, "field": field, "type": error_type, "actual": actual},
        )
        entry = {
            "type": error_type,
            "field": field,
            "message": message,
            "actual": _jsonable(actual),
        }
        if "expected" in raw:
            entry["expected"] = _jsonable(raw["expected"])
        return entry

    @staticmethod
    def _resolve(data: Any, path: Tuple[str, ...]) -> Tuple[Any, Any]:
        parent = None
        current = data
        for key in path:
            if not isinstance(current, Mapping) or key not in current:
                return parent, _MISSING
            parent = current
            current = current[key]
        return parent, current


def get_validator(
    validator_options: Optional[Union[ValidatorOptions, Mapping[str, Any]]] = None,
    cache_compiled: bool = False
) -> SchemaValidator:
    """Build a validator with the middleware defaults applied."""
    return SchemaValidator(merge_validator_options(validator_options), cache_compiled=cache_compiled)
