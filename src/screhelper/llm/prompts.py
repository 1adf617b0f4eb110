"""Prompt construction for title/abstract classification.

The prompt is fully deterministic for a given article and criteria set:
criteria are numbered in the order the reviewer entered them, so the
``criterion`` a backend cites ("2. animal study") can be traced back to
the list shown in the results table.
"""

from __future__ import annotations

from typing import List

from ..core.models import Article, CriteriaSet


SYSTEM_PROMPT = (
    "You are a systematic review expert specialising in title and abstract screening. "
    "Always output a single valid JSON object."
)


def build_classification_prompt(article: Article, criteria: CriteriaSet) -> str:
    """Build the instruction prompt sent to every provider."""
    parts: List[str] = [
        "You are an expert researcher screening scientific articles for a systematic literature review.",
        "Classify the article below using the inclusion and exclusion criteria.",
        "",
        "INCLUSION CRITERIA:",
        *criteria.numbered_inclusion(),
        "",
        "EXCLUSION CRITERIA:",
        *criteria.numbered_exclusion(),
        "",
        "ARTICLE:",
        f"Title: {article.title.strip()}",
        f"Abstract: {article.abstract.strip()}",
        "",
        "DECISION PROCEDURE:",
        "- INCLUDE the article only if it satisfies at least one inclusion criterion "
        "AND violates none of the exclusion criteria.",
        "- Otherwise EXCLUDE it.",
        "- When including, 'criterion' must be the inclusion criterion the article satisfies.",
        "- When excluding, 'criterion' must be the exclusion criterion the article violates "
        "(or, if none is violated, the inclusion criterion it fails to meet).",
        "- Cite the criterion as its number and text, e.g. \"1. <criterion text>\".",
        "- Write the reason in English, in one or two sentences.",
        "",
        "Respond ONLY with a JSON object in exactly this format:",
        "{",
        '  "include": true or false,',
        '  "reason": "clear and concise explanation of the decision",',
        '  "criterion": "number and text of the criterion that determined the decision"',
        "}",
    ]
    return "\n".join(parts)
