from __future__ import annotations

from textwrap import dedent
from typing import Dict, Optional

VERDICT_START = "[DATA]"
VERDICT_END = "[/DATA]"


def _strip(text: str) -> str:
    return dedent(text).strip()


GENERATION_TEMPLATE = _strip(
    """
    Generate {{count}} coding missions about "{{topic}}" in {{language}}.
    Each mission should have a title, description, starter code, a brief solution hint, and a points value.
    Difficulty must be one of: Easy, Medium, Hard, or Challenging.{{difficulty_line}}
    Suggested points: Easy=100, Medium=250, Hard=500, Challenging=1000.

    Respond with a JSON array only, no prose. Each item:
    {
      "title": string,
      "description": string,
      "starter_code": string,
      "solution_hint": string,
      "difficulty": string,
      "points": number
    }
    """
)

EVALUATION_SYSTEM = "You are an expert {{language}} tutor evaluating student code submissions."

EVALUATION_TEMPLATE = _strip(
    """
    Evaluate the following code submission.

    PROBLEM: {{problem}}

    SUBMITTED CODE:
    ```{{language_tag}}
    {{code}}
    ```

    INSTRUCTION:
    1. If the code is CORRECT and solves the problem optimally:
       - Be extremely brief. Just confirm it's correct (e.g., "Logic verified. Great job!").
    2. If the code is INCORRECT or has logic errors:
       - Provide detailed conversational feedback and 2-3 specific suggestions for improvement.
    3. At the very end of your response, include the diagnostic result in JSON format between [DATA] and [/DATA] tags.

    JSON SCHEMA:
    {
      "success": boolean,
      "score": number,
      "feedback": string,
      "suggestions": string[]
    }
    """
)


def _render(template: str, values: Dict[str, str]) -> str:
    prompt = template
    for key, value in values.items():
        prompt = prompt.replace("{{" + key + "}}", value)
    return prompt


def render_generation_prompt(topic: str, language: str, count: int, difficulty: Optional[str] = None) -> str:
    difficulty_line = f"\nEvery mission must use the {difficulty} difficulty." if difficulty else ""
    return _render(
        GENERATION_TEMPLATE,
        {
            "count": str(count),
            "topic": topic,
            "language": language,
            "difficulty_line": difficulty_line,
        },
    )


def render_evaluation_prompt(language: str, problem: str, code: str) -> tuple[str, str]:
    """Return ``(system, prompt)`` for a streamed evaluation."""
    system = _render(EVALUATION_SYSTEM, {"language": language})
    prompt = _render(
        EVALUATION_TEMPLATE,
        {
            "problem": problem,
            "language_tag": language.lower(),
            "code": code,
        },
    )
    return system, prompt
