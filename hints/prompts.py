"""Prompt text and message builders for the variable fix."""

from __future__ import annotations

from core.models import RepairRequest

REPAIR_SCHEMA_TEXT = """
{
  "imports": ["fully.qualified.TypeName", ...],
  "variableContent": "<replacement expression>"
}
"""

VARIABLE_FIX_SYSTEM_PROMPT = f"""
You are a precise Java compilation-error repair assistant.

You receive one Java variable declaration and the compiler diagnostic reported for it.
You MUST respond with STRICT JSON ONLY that matches this shape:

{REPAIR_SCHEMA_TEXT}

Guidelines:
- imports = fully qualified names of the types the fixed declaration needs, without
  the `import` keyword. Use an empty list when nothing must be imported.
- variableContent = the new initializer expression for the declaration (the text to
  the right of `=`, without the trailing semicolon). When the declaration has no
  initializer, give the corrected type instead.
- Keep the variable name and modifiers unchanged.

VERY IMPORTANT:
- Output MUST be valid JSON.
- Do NOT include comments or explanations.
- Do NOT wrap in Markdown.
"""

USER_PROMPT_TEMPLATE = """
Declaration:
---
{declaration}
---

Compiler diagnostic: {diagnostic}

Return ONLY the JSON object.
"""


def build_variable_fix_messages(request: RepairRequest) -> list[dict[str, str]]:
    """Construct chat messages for one repair request."""
    return [
        {"role": "system", "content": VARIABLE_FIX_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": USER_PROMPT_TEMPLATE.format(
                declaration=request.declaration.strip(),
                diagnostic=request.diagnostic or "none",
            ),
        },
    ]
