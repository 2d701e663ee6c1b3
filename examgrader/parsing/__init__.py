"""
Response Parsing Module.

Turns unreliable LLM output into parsed, structurally validated data.
"""

from examgrader.parsing.extractor import (
    ExtractionMethod,
    ExtractionResult,
    ResponseExtractor,
    parse_exam_response,
    parse_grading_response,
    parse_ocr_response,
)
from examgrader.parsing.schemas import (
    EXAM_RESPONSE_SCHEMA,
    GRADING_RESPONSE_SCHEMA,
    OCR_RESPONSE_SCHEMA,
    ResponseSchema,
    validate_structure,
)

__all__ = [
    "EXAM_RESPONSE_SCHEMA",
    "GRADING_RESPONSE_SCHEMA",
    "OCR_RESPONSE_SCHEMA",
    "ExtractionMethod",
    "ExtractionResult",
    "ResponseExtractor",
    "ResponseSchema",
    "parse_exam_response",
    "parse_grading_response",
    "parse_ocr_response",
    "validate_structure",
]
