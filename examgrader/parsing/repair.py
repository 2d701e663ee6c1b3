"""
Heuristic repairs for malformed JSON produced by LLMs.

Each pass targets one failure mode seen in model output. Passes are pure
string transformations; `repair_json` runs them in order on the JSON
candidate extracted from the raw text.
"""

import logging
import re

logger = logging.getLogger(__name__)

# Any language tag: ```json, ```JSON, ```javascript or none
FENCED_BLOCK = re.compile(r"```[A-Za-z0-9_+-]*[ \t]*\n?([\s\S]*?)```")

# A backslash that is neither escaped itself nor the start of a JSON escape.
# Math notation such as \cdot or \sqrt lands here.
STRAY_BACKSLASH = re.compile(r'(?<!\\)\\(?!["\\/bfnrtu])')

# "type": "fill_in_the_blank": "text" -> type plus the question it swallowed
COLLAPSED_TYPE_FIELD = re.compile(r'"type":\s*"([^"]+)":\s*"([^":]+)"')

TRAILING_COMMA = re.compile(r",(\s*[}\]])")

# Sibling objects on separate lines with no comma between them
MISSING_OBJECT_COMMA = re.compile(r"}\s*\n\s*{")


def extract_json_candidate(text: str) -> str:
    """
    Extract the JSON portion of a response.

    Prefers a fenced code block whose body looks like JSON, whatever its
    language tag; otherwise slices from the first opening brace to the
    last closing brace. Falls back to the trimmed text.
    """
    fenced = FENCED_BLOCK.search(text)
    if fenced:
        body = fenced.group(1).strip()
        if body.startswith(("{", "[")):
            return body

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1]

    return text.strip()


def escape_stray_backslashes(text: str) -> str:
    """Double every backslash that does not begin a valid JSON escape."""
    return STRAY_BACKSLASH.sub(r"\\\\", text)


def fix_collapsed_type_field(text: str) -> str:
    """Split a `"type": "x": "question"` pair back into two fields."""
    return COLLAPSED_TYPE_FIELD.sub(r'"type": "\1",\n      "question": "\2"', text)


def remove_trailing_commas(text: str) -> str:
    """Drop commas directly before a closing brace or bracket."""
    return TRAILING_COMMA.sub(r"\1", text)


def insert_missing_commas(text: str) -> str:
    """Insert commas between adjacent objects that sit on separate lines."""
    return MISSING_OBJECT_COMMA.sub("},\n    {", text)


def repair_json(text: str) -> str:
    """
    Apply every repair pass to the JSON candidate within `text`.

    Args:
        text: Raw or already-extracted LLM output.

    Returns:
        The repaired JSON text. Parsing is left to the caller.
    """
    repaired = extract_json_candidate(text)

    escaped = escape_stray_backslashes(repaired)
    if len(escaped) != len(repaired):
        logger.debug("Escaped %d stray backslashes", len(escaped) - len(repaired))
    repaired = escaped

    repaired = fix_collapsed_type_field(repaired)
    repaired = remove_trailing_commas(repaired)
    repaired = insert_missing_commas(repaired)

    return repaired
