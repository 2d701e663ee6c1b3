"""
Configuration management for the Exam Grader system.

Uses Pydantic Settings for type-safe configuration loading from environment variables.
Business policy (grade thresholds, partial credit, pricing, rubric text) lives here
as defaults and is injected into components rather than read from globals.
"""

import logging
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

DEFAULT_GRADING_RUBRIC = """Evaluate the student's answer fairly and objectively. Prioritize the question requirements over the model answer.

PROCESS:
1. Check what the question requires (quantity, type, format)
2. Compare student answer against these requirements
3. Award points: full points if requirements are met, partial points for partially correct answers

GRADING SCALE (4-10):
10: Perfect, 9: Excellent, 8: Good, 7: Satisfactory, 6: Acceptable, 5: Weak, 4: Failed

Accept synonyms and alternative expressions that convey the same meaning."""


class GradeScale(BaseModel):
    """
    Discrete grade scale driven by percentage thresholds.

    Thresholds are evaluated highest-first; the first threshold the
    percentage reaches wins, otherwise the floor grade applies.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="4-10", description="Identifier stored with results")

    thresholds: tuple[tuple[int, str], ...] = Field(
        default=(
            (90, "10"),
            (80, "9"),
            (70, "8"),
            (60, "7"),
            (50, "6"),
            (40, "5"),
        ),
        min_length=1,
        description="(minimum percentage, grade) pairs, strictly descending",
    )

    floor_grade: str = Field(default="4", description="Grade below the lowest threshold")

    @model_validator(mode="after")
    def validate_thresholds(self) -> "GradeScale":
        """Ensure thresholds are within 0-100 and strictly descending."""
        minimums = [minimum for minimum, _ in self.thresholds]
        for minimum in minimums:
            if not 0 <= minimum <= 100:
                raise ValueError(f"Threshold {minimum} is outside 0-100")
        if any(a <= b for a, b in zip(minimums, minimums[1:])):
            raise ValueError(f"Thresholds must be strictly descending: {minimums}")
        return self

    def grade_for(self, percentage: int) -> str:
        """Map a percentage to a grade."""
        for minimum, grade in self.thresholds:
            if percentage >= minimum:
                return grade
        return self.floor_grade


class PricingTable(BaseModel):
    """Per-million-token prices for the AI grading model."""

    model_config = ConfigDict(frozen=True)

    input_cost_per_1m: float = Field(default=0.10, ge=0.0)
    output_cost_per_1m: float = Field(default=0.40, ge=0.0)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings are validated at startup. AI grading is only attempted
    when an API key is configured.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # AI Grading Service Configuration
    # ==========================================================================
    llm_api_key: str | None = Field(
        default=None,
        description="API key for the OpenAI-compatible grading endpoint",
    )

    llm_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL for the grading API",
    )

    llm_model: str = Field(
        default="gpt-4o-mini",
        description="Model to use for grading",
    )

    llm_temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Temperature for LLM generation (0.0 = deterministic)",
    )

    llm_max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries for rate-limited or unreachable API calls",
    )

    ai_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Upper bound for a single AI grading call",
    )

    use_ai_grading: bool = Field(
        default=True,
        description="Master switch for AI grading; rule-based grading is always available",
    )

    # ==========================================================================
    # Grading Policy
    # ==========================================================================
    partial_credit_ratio: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Share of max points awarded for partially matching text answers",
    )

    grading_rubric: str = Field(
        default=DEFAULT_GRADING_RUBRIC,
        min_length=1,
        description="Rubric sent to the AI grader",
    )

    grade_scale: GradeScale = Field(default_factory=GradeScale)

    pricing: PricingTable = Field(default_factory=PricingTable)

    true_synonyms: frozenset[str] = Field(
        default=frozenset({"true", "tosi", "kyllä", "oikein", "yes", "correct"}),
        description="Answers accepted as 'true' for true/false questions",
    )

    false_synonyms: frozenset[str] = Field(
        default=frozenset({"false", "epätosi", "ei", "väärin", "no", "incorrect"}),
        description="Answers accepted as 'false' for true/false questions",
    )

    # ==========================================================================
    # Logging
    # ==========================================================================
    log_level: str = Field(default="INFO")

    @field_validator("llm_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Ensure base URL doesn't have trailing slash."""
        return v.rstrip("/")

    @field_validator("true_synonyms", "false_synonyms")
    @classmethod
    def normalize_synonyms(cls, v: frozenset[str]) -> frozenset[str]:
        """Synonyms are compared against trimmed, lower-cased answers."""
        return frozenset(s.strip().lower() for s in v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def ai_grading_available(self) -> bool:
        """True when AI grading is switched on and has credentials."""
        return self.use_ai_grading and bool(self.llm_api_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are only loaded once.
    """
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
