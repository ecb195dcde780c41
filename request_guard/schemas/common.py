"""
Common schemas and type declarations for request validation.

This module contains the request-target vocabulary, the multi-section
schema shape and the fixed error response model.
"""

from typing import Any, Dict, List, Literal, Mapping, Optional, Type, TypedDict, Union

from pydantic import BaseModel, Field


ValidateReqType = Literal["body", "params", "query", "headers", "multiple"]

# Request sections a schema may be applied to, in the order they are documented.
VALID_REQUEST_TYPES = ("body", "params", "query", "headers")

# A single schema is either a declarative rule mapping or a pydantic model class.
ValidationSchema = Union[Mapping[str, Any], Type[BaseModel]]

ErrorEntry = Dict[str, Any]

ValidationOutcome = Union[Literal[True], List[ErrorEntry]]

INVALID_REQUEST_TYPE_MESSAGE = "Invalid request type!"


class MultiValidationSchema(TypedDict, total=False):
    """Mapping from request section to the schema applied to it."""

    body: ValidationSchema
    params: ValidationSchema
    query: ValidationSchema
    headers: ValidationSchema


SchemaType = Union[ValidationSchema, MultiValidationSchema]


class ValidationErrorResponse(BaseModel):
    """Error body written when a request is rejected."""

    type: str = Field("Validation Error!", description="Fixed error category")
    status: str = Field("error", description="Always 'error'")
    message: str = Field(INVALID_REQUEST_TYPE_MESSAGE, description="First failing message")
    details: Optional[List[ErrorEntry]] = Field(
        None, description="Every error entry reported for the failing section"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "type": "Validation Error!",
                "status": "error",
                "message": "The 'name' field is required.",
                "details": [
                    {
                        "type": "missing",
                        "field": "name",
                        "message": "The 'name' field is required.",
                        "actual": None
                    }
                ]
            }
        }
    }

    @classmethod
    def invalid_request_type(cls) -> "ValidationErrorResponse":
        """Build the fixed response for an unrecognized request type."""
        return cls()

    @classmethod
    def from_errors(cls, errors: List[ErrorEntry]) -> "ValidationErrorResponse":
        """Build a response from a non-empty list of engine error entries."""
        return cls(message=errors[0]["message"], details=errors)

    def to_content(self) -> Dict[str, Any]:
        """Serialize for a JSON response, omitting ``details`` when absent."""
        return self.model_dump(exclude_none=True)
