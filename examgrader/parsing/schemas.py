"""
Structural schemas for parsed LLM responses.

A schema lists required keys and, for nested fields, a sub-schema applied
to the nested object or to every item of a nested array. Validation
collects problems instead of raising so callers can decide whether a
partially valid response is usable.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ResponseSchema(BaseModel):
    """Required/optional keys of a response object."""

    model_config = ConfigDict(frozen=True)

    required: tuple[str, ...] = Field(default=())

    optional: tuple[str, ...] = Field(default=())

    nested: dict[str, "ResponseSchema"] = Field(default_factory=dict)


def validate_structure(data: Any, schema: ResponseSchema) -> list[str]:
    """
    Validate parsed data against a schema.

    Args:
        data: Parsed JSON value.
        schema: Expected structure.

    Returns:
        List of problems, empty when the data matches.
    """
    if not isinstance(data, dict):
        return ["Response is not an object"]

    errors = [f"Missing required field: {field}" for field in schema.required if field not in data]

    for field, nested_schema in schema.nested.items():
        if field not in data:
            continue
        value = data[field]
        if isinstance(value, list):
            for index, item in enumerate(value):
                errors.extend(
                    f"{field}[{index}]: {error}"
                    for error in validate_structure(item, nested_schema)
                )
        else:
            errors.extend(f"{field}: {error}" for error in validate_structure(value, nested_schema))

    return errors


GRADING_RESPONSE_SCHEMA = ResponseSchema(
    required=("points_awarded", "feedback"),
    optional=("percentage", "grade_reasoning"),
)

EXAM_RESPONSE_SCHEMA = ResponseSchema(
    required=("questions",),
    optional=("topic", "difficulty"),
    nested={
        "questions": ResponseSchema(
            required=("id", "type", "question"),
            optional=("options", "correct_answer", "explanation", "max_points"),
        )
    },
)

OCR_RESPONSE_SCHEMA = ResponseSchema(required=("rawText",))
