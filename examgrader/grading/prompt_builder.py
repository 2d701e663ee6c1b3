"""
Prompt builder for AI grading.

Constructs the per-question grading prompt. The rubric text is
configuration; this module only frames it together with the question,
the canonical answer and the student's answer, and fixes the JSON output
format the response parser expects.
"""

from examgrader.models import Question


class PromptBuilder:
    """
    Builds grading prompts for a single question.

    The prompts are designed to:
    1. Keep the rubric replaceable without code changes
    2. Give the grader every fact it needs (question, options, model answer)
    3. Produce JSON matching the grading response schema
    """

    SYSTEM_PROMPT = """You are an exam grader. You grade one answer at a time against the question and its model answer.

OUTPUT RULES:
- Award points between 0 and the maximum points stated for the question.
- Your output MUST be valid JSON matching the exact format specified.
- Do not add any text before or after the JSON."""

    @staticmethod
    def build_grading_prompt(
        question: Question,
        student_answer: str,
        max_points: int,
        rubric: str,
    ) -> str:
        """
        Build the user prompt for grading one question.

        Args:
            question: The question being graded.
            student_answer: The student's answer text.
            max_points: Maximum points for the question.
            rubric: Grading rubric text.

        Returns:
            The formatted user prompt.
        """
        question_type = getattr(question.question_type, "value", question.question_type)

        lines = [
            rubric,
            "",
            "QUESTION DETAILS:",
            f'Question: "{question.question_text}"',
            f"Question type: {question_type}",
            f'Model answer: "{question.answer_text}"',
            f"Maximum points: {max_points}",
        ]
        if question.options:
            lines.append(f"Answer options: {', '.join(question.options)}")
        if question.explanation:
            lines.append(f"Explanation: {question.explanation}")

        lines.extend(
            [
                "",
                f'STUDENT ANSWER: "{student_answer}"',
                "",
                f"Grade the answer and award points between 0-{max_points}.",
                "",
                "OUTPUT FORMAT (respond with ONLY this JSON, no other text):",
                "{",
                f'  "points_awarded": <number between 0 and {max_points}>,',
                '  "percentage": <number between 0 and 100>,',
                '  "feedback": "<feedback for the student>",',
                '  "grade_reasoning": "<why these points were awarded>"',
                "}",
            ]
        )

        return "\n".join(lines)

    @staticmethod
    def get_system_prompt() -> str:
        """Get the system prompt for grading."""
        return PromptBuilder.SYSTEM_PROMPT
