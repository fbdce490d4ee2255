"""Prompt text for the question generator."""

from __future__ import annotations

from typing import Sequence

SYSTEM_PROMPT = (
    "You write a single conversation question for two people playing a "
    "get-to-know-you game together. Match the requested heat level: Mild is "
    "light and friendly, Medium is personal, Hot is bold and flirty, Extra-Hot "
    "is daring but never explicit or hurtful. Reply with the question only, "
    "one sentence, no numbering and no quotes."
)

_HISTORY_LIMIT = 20


def build_user_prompt(
    *,
    spicy_level: str,
    category: str,
    categories: Sequence[str],
    previous: Sequence[str],
) -> str:
    lines = [
        f"Heat level: {spicy_level}",
        f"Category for this round: {category}",
    ]
    if categories:
        lines.append("Categories the players picked: " + ", ".join(categories))
    recent = list(previous)[-_HISTORY_LIMIT:]
    if recent:
        lines.append("Do not repeat or closely paraphrase these earlier questions:")
        lines.extend(f"- {text}" for text in recent)
    return "\n".join(lines)
