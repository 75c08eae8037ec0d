"""
Renders a ClinicalContext and the user's query into the prompt sent to the
generative backend.

The output depends only on its inputs: no clocks, no randomness, and JSON is
serialized with sorted keys, so identical requests yield identical prompts.
"""

import json
from dataclasses import dataclass
from typing import Any

from .context import ClinicalContext
from .errors import QueryValidationError

SYSTEM_INSTRUCTION = """You are a careful health advisory assistant. You give general health
information grounded in the user's clinical context. You do NOT diagnose, you do
NOT prescribe medication or dosages, and you always advise professional care when
symptoms could be serious.

Respond with ONE JSON object and nothing else: no markdown, no code fences, no
text before or after it. The object MUST have exactly these fields:

{
  "answer": "string, non-empty, plain-language reply to the user",
  "isEmergency": true | false,
  "riskLevel": "low" | "moderate" | "high" | "emergency",
  "recommendations": ["string", ...],
  "preventiveAdvice": ["string", ...],
  "followUpQuestions": ["string", ...]
}

Rules:
- If isEmergency is true, riskLevel MUST be "emergency", and the answer must tell
  the user to contact emergency services immediately.
- Treat chest pain, difficulty breathing, loss of consciousness and stroke-like
  symptoms (face drooping, arm weakness, slurred speech) as emergencies.
- When unsure between two risk levels, choose the higher one.
- recommendations, preventiveAdvice and followUpQuestions are lists of short
  strings; use an empty list when there is nothing to add."""


@dataclass(frozen=True)
class PromptPayload:
    system: str
    user: str

    def render(self) -> str:
        return f"{self.system}\n\n{self.user}"


def _serialize(data: Any) -> str:
    return json.dumps(data, sort_keys=True, indent=2, ensure_ascii=False)


def _format_history(context: ClinicalContext) -> str:
    return "\n".join(f"{m.role}: {m.content.strip()}" for m in context.message_history)


def validate_query(query: Any) -> str:
    if not isinstance(query, str):
        raise QueryValidationError("Invalid request: query is required and must be a string")
    query = query.strip()
    if not query:
        raise QueryValidationError("Invalid request: query must not be empty")
    return query


def build_prompt(context: ClinicalContext, query: Any) -> PromptPayload:
    """
    Build the backend prompt.

    The user turn contains, in order: the serialized clinical context, the
    recent conversation (oldest first) and the current question.

    Raises:
        QueryValidationError: if query is not a non-blank string
    """
    query = validate_query(query)

    clinical = context.to_prompt_dict()
    sections = [
        "CLINICAL CONTEXT (JSON):",
        _serialize(clinical) if clinical else "No clinical context was provided.",
    ]

    history = _format_history(context)
    if history:
        sections += [
            "",
            "RECENT CONVERSATION (oldest first):",
            history,
        ]

    sections += [
        "",
        "CURRENT QUESTION:",
        query,
        "",
        "Answer the current question using the context above. Return only the JSON object.",
    ]

    return PromptPayload(system=SYSTEM_INSTRUCTION, user="\n".join(sections))
