"""
Grading Module.

Per-question AI grading with rule-based fallback, exam-level aggregation
and cost accounting.
"""

from examgrader.grading.cost import CostAccountant
from examgrader.grading.engine import GradingEngine
from examgrader.grading.llm_client import Completion, CompletionClient, LLMClient, LLMError, TokenUsage
from examgrader.grading.prompt_builder import PromptBuilder
from examgrader.grading.question_grader import GradingResponseError, QuestionGrader
from examgrader.grading.rules import RuleBasedGrader

__all__ = [
    "Completion",
    "CompletionClient",
    "CostAccountant",
    "GradingEngine",
    "GradingResponseError",
    "LLMClient",
    "LLMError",
    "PromptBuilder",
    "QuestionGrader",
    "RuleBasedGrader",
    "TokenUsage",
]
