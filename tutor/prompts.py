"""
Prompt builders. Pure string functions, no I/O.
"""

from models import Attempt, ExerciseType, Feedback


def _weak_points(feedback: Feedback) -> str:
    return "; ".join(f"{i}. {issue.point}" for i, issue in enumerate(feedback.errors, 1))


def build_feedback_prompt(theme_title: str, user_content: str, attempt_id: str) -> str:
    """Critique request. The model must echo attempt_id."""
    return f'''Analyze my understanding of "{theme_title}" and return only the requested JSON. The student's text is between triple quotes:
"""
{user_content}
"""

Your answer must be valid JSON, with no extra text, using exactly this structure:
{{
  "feedback_id": "<unique identifier>",
  "attempt_id": "{attempt_id}",
  "summary": "<short summary>",
  "errors": [
    {{"id": "e1", "point": "<weak point in a short sentence>", "counterexample": "<concrete counterexample>"}}
  ],
  "suggestion": "<concise improvement plan>"
}}
Do not produce Markdown or comments.
'''


def build_theory_prompt(feedback: Feedback, theme_title: str) -> str:
    """Short theory refresher built from a critique."""
    return f'''Based on the following critique of the theme "{theme_title}", write a clear and brief explanation that reinforces the theory the student needs. Critique:
"""
{feedback.critique_text()}
"""
Return one paragraph that clarifies the key concepts in no more than 200 words.'''


def build_analytical_exercise_prompt(feedback: Feedback, theory_text: str, attempt: Attempt) -> str:
    return f'''Generate an analytical exercise in LaTeX notation that forces the student to apply the theory found weak in attempt {attempt.latest_version}. Critique:
Summary: {feedback.summary}
Errors: {_weak_points(feedback)}
Supporting theory:
{theory_text}

Return only the JSON:
{{
  "exercise_id": "<unique identifier>",
  "type": "analytical",
  "payload": "<statement in escaped LaTeX>"
}}
'''


def build_proposition_exercise_prompt(feedback: Feedback, theory_text: str, attempt: Attempt) -> str:
    """
    Single-call proposition exercise.

    Used for the manual path; generation through the model goes
    through the proposition chain instead.
    """
    return f'''Generate exactly three different propositions related to the weaknesses found in attempt {attempt.latest_version}. One must be the converse, one the inverse and one the contrapositive of a base proposition, without saying which is which. Use the critique and the supporting theory:
Summary: {feedback.summary}
Errors: {_weak_points(feedback)}
Theory:
{theory_text}

Return only the JSON:
{{
  "exercise_id": "<unique identifier>",
  "type": "proposition",
  "payload": "<JSON array with the three statements>"
}}
'''


def build_manual_prompt(kind: ExerciseType, base_prompt: str) -> str:
    """Prompt the learner can paste into any chat model."""
    if ExerciseType(kind) == ExerciseType.ANALYTICAL:
        return f"{base_prompt}\n\nFollow the requested format and answer only with JSON."
    return f"{base_prompt}\n\nRemember to return only the requested JSON."
