"""
Cost accounting for AI grading calls.

Converts token usage into cost using an injected price table and sums
usage across calls. Pure computation, no I/O.
"""

import math
from typing import Iterable

from examgrader.config import PricingTable
from examgrader.grading.llm_client import TokenUsage
from examgrader.models import UsageMetadata

TOKENS_PER_MILLION = 1_000_000


def format_cost(cost: float, precision: int = 6) -> str:
    """Format a cost for display in logs."""
    return f"${cost:.{precision}f}"


def estimate_tokens(text: str) -> int:
    """Approximate token count at roughly four characters per token."""
    return math.ceil(len(text) / 4)


class CostAccountant:
    """Computes per-call and aggregated cost of AI usage."""

    def __init__(self, pricing: PricingTable, model: str = ""):
        self._pricing = pricing
        self._model = model

    def cost_for(
        self,
        prompt_tokens: int,
        candidate_tokens: int,
        total_tokens: int | None = None,
        model: str | None = None,
    ) -> UsageMetadata:
        """
        Cost of a single call.

        Args:
            prompt_tokens: Input tokens.
            candidate_tokens: Output tokens.
            total_tokens: Provider-reported total; defaults to the sum.
            model: Model name to record.

        Returns:
            UsageMetadata with input, output and estimated cost.
        """
        input_cost = prompt_tokens / TOKENS_PER_MILLION * self._pricing.input_cost_per_1m
        output_cost = candidate_tokens / TOKENS_PER_MILLION * self._pricing.output_cost_per_1m

        return UsageMetadata(
            prompt_token_count=prompt_tokens,
            candidates_token_count=candidate_tokens,
            total_token_count=(
                total_tokens if total_tokens is not None else prompt_tokens + candidate_tokens
            ),
            input_cost=input_cost,
            output_cost=output_cost,
            estimated_cost=input_cost + output_cost,
            model=model if model is not None else self._model,
        )

    def usage_from_completion(
        self,
        prompt: str,
        response_text: str,
        usage: TokenUsage | None,
        model: str | None = None,
    ) -> UsageMetadata:
        """
        Cost of a completion, estimating tokens when the provider reports none.
        """
        if usage is not None:
            return self.cost_for(
                usage.prompt_tokens,
                usage.completion_tokens,
                usage.total_tokens,
                model=model,
            )
        return self.cost_for(estimate_tokens(prompt), estimate_tokens(response_text), model=model)

    def aggregate(self, records: Iterable[UsageMetadata | None]) -> UsageMetadata:
        """
        Sum usage over many calls.

        Missing records are skipped; no records yields zero usage.
        """
        prompt = candidates = total = 0
        input_cost = output_cost = estimated = 0.0
        model = self._model

        for record in records:
            if record is None:
                continue
            prompt += record.prompt_token_count
            candidates += record.candidates_token_count
            total += record.total_token_count
            input_cost += record.input_cost
            output_cost += record.output_cost
            estimated += record.estimated_cost
            model = record.model or model

        return UsageMetadata(
            prompt_token_count=prompt,
            candidates_token_count=candidates,
            total_token_count=total,
            input_cost=input_cost,
            output_cost=output_cost,
            estimated_cost=estimated,
            model=model,
        )
