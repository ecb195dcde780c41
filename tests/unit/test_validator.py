"""
Unit tests for the validation engine.

Covers error entry formatting, message templates, engine options and
custom checker functions in both calling conventions.
"""

import asyncio

import pytest
from pydantic import BaseModel, ValidationError

from request_guard.core.validator import (
    SchemaValidator,
    ValidatorOptions,
    get_validator,
    merge_validator_options
)
from request_guard.utils.exceptions import SchemaDefinitionError


class UserModel(BaseModel):
    name: str
    age: int


@pytest.fixture
def validator():
    return SchemaValidator()


class TestValidate:
    """Test suite for structural validation."""

    @pytest.mark.asyncio
    async def test_valid_value_returns_true(self, validator):
        assert await validator.validate({"name": "Ann"}, {"name": "string"}) is True

    @pytest.mark.asyncio
    async def test_missing_field_entry(self, validator):
        outcome = await validator.validate({}, {"name": "string"})

        assert outcome == [{
            "type": "missing",
            "field": "name",
            "message": "The 'name' field is required.",
            "actual": None,
        }]

    @pytest.mark.asyncio
    async def test_type_mismatch_uses_fallback_message(self, validator):
        outcome = await validator.validate({"page": "abc"}, {"page": "number"})

        assert len(outcome) == 1
        assert outcome[0]["type"] == "float_parsing"
        assert outcome[0]["field"] == "page"
        assert outcome[0]["actual"] == "abc"
        assert outcome[0]["message"].startswith("The 'page' field is invalid: ")

    @pytest.mark.asyncio
    async def test_errors_keep_declaration_order(self, validator):
        outcome = await validator.validate({}, {"name": "string", "email": "email"})

        assert [entry["field"] for entry in outcome] == ["name", "email"]

    @pytest.mark.asyncio
    async def test_nested_and_array_fields_use_dotted_paths(self, validator):
        schema = {
            "address": {"city": "string"},
            "tags": {"type": "array", "items": "string"},
        }

        outcome = await validator.validate({"address": {}, "tags": ["a", 2]}, schema)

        assert [entry["field"] for entry in outcome] == ["address.city", "tags.1"]

    @pytest.mark.asyncio
    async def test_non_mapping_value_reports_root(self, validator):
        outcome = await validator.validate(["not", "an", "object"], {"name": "string"})

        assert outcome[0]["field"] == "value"

    @pytest.mark.asyncio
    async def test_pydantic_model_schema(self, validator):
        assert await validator.validate({"name": "Ann", "age": "7"}, UserModel) is True

        outcome = await validator.validate({"name": "Ann"}, UserModel)
        assert outcome[0]["field"] == "age"
        assert outcome[0]["message"] == "The 'age' field is required."

    @pytest.mark.asyncio
    async def test_number_equal_rejects_other_values(self, validator):
        outcome = await validator.validate({"n": 4}, {"n": {"type": "number", "equal": 5}})

        assert outcome is not True
        assert outcome[0]["field"] == "n"
        assert outcome[0]["actual"] == 4

    @pytest.mark.asyncio
    async def test_unknown_rule_type_raises(self, validator):
        with pytest.raises(SchemaDefinitionError):
            await validator.validate({}, {"name": "text"})


class TestOptions:
    """Test suite for engine options."""

    @pytest.mark.asyncio
    async def test_halt_on_first_error(self):
        validator = SchemaValidator(ValidatorOptions(halt_on_first_error=True))

        outcome = await validator.validate({}, {"name": "string", "email": "email"})

        assert len(outcome) == 1
        assert outcome[0]["field"] == "name"

    @pytest.mark.asyncio
    async def test_message_templates_by_error_type(self):
        validator = SchemaValidator(ValidatorOptions(messages={"missing": "{field} is mandatory"}))

        outcome = await validator.validate({}, {"name": "string"})

        assert outcome[0]["message"] == "name is mandatory"

    @pytest.mark.asyncio
    async def test_field_messages_win_over_option_messages(self):
        validator = SchemaValidator(ValidatorOptions(messages={"missing": "generic"}))
        schema = {"name": {"type": "string", "messages": {"missing": "Name please"}}}

        outcome = await validator.validate({}, schema)

        assert outcome[0]["message"] == "Name please"

    @pytest.mark.asyncio
    async def test_unknown_template_keys_are_left_in_place(self):
        validator = SchemaValidator(ValidatorOptions(messages={"missing": "{field} {nope}"}))

        outcome = await validator.validate({}, {"name": "string"})

        assert outcome[0]["message"] == "name {nope}"

    @pytest.mark.asyncio
    async def test_strict_disables_coercion(self):
        lax = SchemaValidator()
        strict = SchemaValidator(ValidatorOptions(strict=True))

        assert await lax.validate({"page": "2"}, {"page": "number|integer"}) is True
        assert await strict.validate({"page": "2"}, {"page": "number|integer"}) is not True

    @pytest.mark.asyncio
    async def test_extra_forbid(self):
        validator = SchemaValidator(ValidatorOptions(extra="forbid"))

        outcome = await validator.validate({"name": "Ann", "role": "x"}, {"name": "string"})

        assert outcome[0]["message"] == "The 'role' field is not allowed."

    def test_cache_compiled_reuses_models(self):
        validator = SchemaValidator(cache_compiled=True)
        schema = {"name": "string"}

        assert validator.compile(schema) is validator.compile(schema)
        assert validator.compile(schema) is not validator.compile({"name": "string"})

    def test_without_cache_models_are_rebuilt(self):
        validator = SchemaValidator()
        schema = {"name": "string"}

        assert validator.compile(schema).model is not validator.compile(schema).model


class TestMergeValidatorOptions:
    """Test suite for option merging."""

    def test_new_custom_checker_enabled_by_default(self):
        assert merge_validator_options().use_new_custom_checker_function is True
        assert ValidatorOptions().use_new_custom_checker_function is False

    def test_caller_options_are_applied(self):
        options = merge_validator_options({"halt_on_first_error": True})

        assert options.halt_on_first_error is True
        assert options.use_new_custom_checker_function is True

    def test_caller_may_override_mandatory_option(self):
        assert merge_validator_options(
            {"use_new_custom_checker_function": False}
        ).use_new_custom_checker_function is False
        assert merge_validator_options(
            ValidatorOptions(use_new_custom_checker_function=False)
        ).use_new_custom_checker_function is False

    def test_unset_model_fields_do_not_override(self):
        options = merge_validator_options(ValidatorOptions(strict=True))

        assert options.strict is True
        assert options.use_new_custom_checker_function is True

    def test_unknown_option_is_rejected(self):
        with pytest.raises(ValidationError):
            merge_validator_options({"haltOnFirstError": True})

    def test_get_validator_applies_defaults(self):
        validator = get_validator({"strict": True})

        assert validator.options.strict is True
        assert validator.options.use_new_custom_checker_function is True


class TestCustomCheckers:
    """Test suite for custom checker functions."""

    @pytest.mark.asyncio
    async def test_new_style_checker_reports_errors(self):
        calls = []

        def even(value, errors, rule, path, parent, context):
            calls.append((value, path, parent, context["data"]))
            if value % 2:
                errors.append({"type": "evenNumber", "actual": value})
            return value

        validator = get_validator()
        schema = {"count": {"type": "number", "integer": True, "custom": even}}

        outcome = await validator.validate({"count": "3"}, schema)

        assert outcome == [{
            "type": "evenNumber",
            "field": "count",
            "message": "The 'count' field fails the 'evenNumber' check.",
            "actual": 3,
        }]
        assert calls == [(3, "count", {"count": 3}, {"count": 3})]

    @pytest.mark.asyncio
    async def test_async_new_style_checker(self):
        async def slow_check(value, errors, *args):
            await asyncio.sleep(0)
            errors.append({"type": "taken", "message": f"{value} is taken"})

        validator = get_validator()

        outcome = await validator.validate({"name": "ann"}, {"name": {"type": "string", "custom": slow_check}})

        assert outcome[0]["message"] == "ann is taken"

    @pytest.mark.asyncio
    async def test_checker_errors_use_message_templates(self):
        def check(value, errors, *args):
            errors.append({"type": "tooOld", "expected": 100})

        validator = get_validator({"messages": {"tooOld": "'{field}' must be below {expected}"}})

        outcome = await validator.validate({"age": 120}, {"age": {"type": "number", "custom": check}})

        assert outcome[0]["message"] == "'age' must be below 100"
        assert outcome[0]["expected"] == 100

    @pytest.mark.asyncio
    async def test_string_errors_become_messages(self):
        def check(value, errors, *args):
            errors.append("Nope")

        outcome = await get_validator().validate({"a": "x"}, {"a": {"type": "string", "custom": check}})

        assert outcome[0]["type"] == "custom"
        assert outcome[0]["message"] == "Nope"

    @pytest.mark.asyncio
    async def test_legacy_checker_returning_true(self):
        validator = get_validator({"use_new_custom_checker_function": False})

        outcome = await validator.validate(
            {"name": "Ann"},
            {"name": {"type": "string", "custom": lambda value, rule: True}}
        )

        assert outcome is True

    @pytest.mark.asyncio
    async def test_legacy_checker_returning_errors(self):
        async def check(value, rule):
            return [{"type": "blocked", "actual": value}]

        validator = get_validator({"use_new_custom_checker_function": False})

        outcome = await validator.validate({"name": "root"}, {"name": {"type": "string", "custom": check}})

        assert outcome[0]["type"] == "blocked"
        assert outcome[0]["actual"] == "root"

    @pytest.mark.asyncio
    async def test_legacy_checker_returning_false(self):
        validator = get_validator({"use_new_custom_checker_function": False})

        outcome = await validator.validate(
            {"name": "Ann"},
            {"name": {"type": "string", "custom": lambda value, rule: False}}
        )

        assert outcome[0]["message"] == "The 'name' field fails the custom check."

    @pytest.mark.asyncio
    async def test_checker_skipped_when_field_failed_structurally(self):
        def check(value, errors, *args):
            raise AssertionError("must not run")

        schema = {
            "age": {"type": "number", "custom": check},
            "name": "string",
        }

        outcome = await get_validator().validate({"age": "old"}, schema)

        assert [entry["field"] for entry in outcome] == ["age", "name"]

    @pytest.mark.asyncio
    async def test_checker_runs_alongside_other_failures(self):
        def check(value, errors, *args):
            errors.append({"type": "bad"})

        schema = {
            "name": "string",
            "code": {"type": "string", "custom": check},
        }

        outcome = await get_validator().validate({"code": "x"}, schema)

        assert [entry["field"] for entry in outcome] == ["name", "code"]

    @pytest.mark.asyncio
    async def test_checker_skipped_for_absent_optional_field(self):
        def check(value, errors, *args):
            raise AssertionError("must not run")

        schema = {"nick": {"type": "string", "optional": True, "custom": check}}

        assert await get_validator().validate({}, schema) is True

    @pytest.mark.asyncio
    async def test_checker_exceptions_propagate(self):
        def check(value, errors, *args):
            raise RuntimeError("checker crashed")

        with pytest.raises(RuntimeError, match="checker crashed"):
            await get_validator().validate({"a": "x"}, {"a": {"type": "string", "custom": check}})

    @pytest.mark.asyncio
    async def test_halt_on_first_error_stops_checkers(self):
        calls = []

        def check(value, errors, *args):
            calls.append(value)
            errors.append({"type": "bad"})

        schema = {
            "a": {"type": "string", "custom": check},
            "b": {"type": "string", "custom": check},
        }

        outcome = await get_validator({"halt_on_first_error": True}).validate({"a": "1", "b": "2"}, schema)

        assert len(outcome) == 1
        assert calls == ["1"]
