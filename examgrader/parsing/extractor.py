"""
Layered extraction of structured data from LLM responses.

Strategies are tried cheapest first and the first success wins:
1. Direct parse of the whole text
2. Markdown/boundary extraction, then parse
3. Heuristic repair, then parse

A response that survives none of them yields a failed result rather
than an exception.
"""

import json
import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from examgrader.parsing.repair import extract_json_candidate, repair_json
from examgrader.parsing.schemas import (
    EXAM_RESPONSE_SCHEMA,
    GRADING_RESPONSE_SCHEMA,
    OCR_RESPONSE_SCHEMA,
    ResponseSchema,
    validate_structure,
)

logger = logging.getLogger(__name__)


class ExtractionMethod(str, Enum):
    """Which strategy produced the parsed data."""

    DIRECT = "direct"
    MARKDOWN = "markdown"
    REPAIR = "repair"
    FAILED = "failed"


class ExtractionResult(BaseModel):
    """Outcome of parsing an LLM response."""

    model_config = ConfigDict(frozen=True)

    success: bool

    data: Any = Field(default=None)

    method: ExtractionMethod

    error: str | None = Field(default=None)

    validation_errors: tuple[str, ...] = Field(
        default=(),
        description="Schema problems found in otherwise parseable data",
    )

    @property
    def is_valid(self) -> bool:
        """Parsed and free of schema problems."""
        return self.success and not self.validation_errors


class ResponseExtractor:
    """
    Turns raw LLM text into parsed JSON data.

    The extractor knows nothing about grading; callers pass the schema
    they need and decide what to do with validation errors.
    """

    def parse(self, raw_text: str, schema: ResponseSchema | None = None) -> ExtractionResult:
        """
        Parse raw LLM output.

        Args:
            raw_text: The model's response text.
            schema: Optional structure to validate the parsed data against.

        Returns:
            ExtractionResult tagged with the strategy that succeeded.
        """
        if not raw_text or not isinstance(raw_text, str):
            return ExtractionResult(
                success=False,
                method=ExtractionMethod.FAILED,
                error="Invalid input: text is empty or not a string",
            )

        for method, candidate in self._candidates(raw_text):
            try:
                data = json.loads(candidate)
            except (json.JSONDecodeError, RecursionError):
                continue

            if method is not ExtractionMethod.DIRECT:
                logger.debug("Parsed LLM response via %s strategy", method.value)

            validation_errors: tuple[str, ...] = ()
            if schema is not None:
                validation_errors = tuple(validate_structure(data, schema))

            return ExtractionResult(
                success=True,
                data=data,
                method=method,
                validation_errors=validation_errors,
            )

        logger.warning("Failed to parse LLM response of %d characters", len(raw_text))
        return ExtractionResult(
            success=False,
            method=ExtractionMethod.FAILED,
            error=(
                "Failed to parse JSON after trying all strategies. "
                f"Original text length: {len(raw_text)}"
            ),
        )

    @staticmethod
    def _candidates(raw_text: str):
        """Yield (strategy, text to parse) lazily so later passes run only on demand."""
        yield ExtractionMethod.DIRECT, raw_text
        yield ExtractionMethod.MARKDOWN, extract_json_candidate(raw_text)
        yield ExtractionMethod.REPAIR, repair_json(raw_text)


def parse_grading_response(text: str) -> ExtractionResult:
    """Parse an AI grading response."""
    return ResponseExtractor().parse(text, GRADING_RESPONSE_SCHEMA)


def parse_exam_response(text: str) -> ExtractionResult:
    """Parse an exam generation response."""
    return ResponseExtractor().parse(text, EXAM_RESPONSE_SCHEMA)


def parse_ocr_response(text: str) -> ExtractionResult:
    """Parse an OCR extraction response."""
    return ResponseExtractor().parse(text, OCR_RESPONSE_SCHEMA)
