"""Prompt builders for vision analysis and rewrites.

Each builder returns a role-tagged message list ready for a TextGenerator.
"""

from collections.abc import Mapping, Sequence

from vision_builder.domain.questions import (
    KEYWORDS_QUESTION,
    MENTAL_IMAGE_QUESTION,
    QUESTIONS,
)

ANALYSIS_SYSTEM_PROMPT = """You are an expert in Organizational Culture and Strategic Planning, focused on writing COMPANY VISION STATEMENTS.

# CORE CONTEXT

## What is a company vision?
A vision must be grand, inspiring and strategic so that it can:
- Guide the company's strategic planning
- Attract and retain people aligned with its purpose
- Give direction, a north, a destination and focus
- Position the company strategically in its market

A vision is what the company pursues in the FUTURE. It is a DESTINATION: "WHERE" the company wants to arrive.
People support a vision when they see it converging with their own goals.

## Types of vision

1. **INSPIRATIONAL** (most common):
   - Contains no metrics
   - Seeks to inspire and motivate the company's actions
   - Examples:
     * Amazon: "To be Earth's most customer-centric company"
     * Harvard: "To be the reference in educating leaders who make a difference in the world"
     * Meta: "Build community and bring the world closer together"
     * Apple: "To make the best products on earth and leave the world better than we found it"

2. **MEASURABLE**:
   - Contains a quantifiable metric
   - Sets specific targets and deadlines
   - Examples:
     * "Bring health and beauty to 1 million people by 2025"
     * "Be among the 100 largest construction companies in the country by 2026"

# MANDATORY RULES

## Never:
- Describe WHAT the company does (products/services)
- Describe HOW the company operates (processes/methods)
- Exceed 2 lines or 14 words

## Always:
- Focus on WHERE the company wants to arrive (destination/direction)
- Use at most 2 lines and **8 to 14 words IN TOTAL**
- Keep a professional, inspiring and strategic tone
- Reflect the impact the company wants to have on the world

# ANALYSIS PROCESS

1. Frequency and meaning: read ALL 10 answers, find the words that REPEAT and the ones with the most strategic weight.
2. Keywords (question 10): extract EVERY keyword and use AS MANY AS POSSIBLE, allowing natural grammatical adaptation (singular/plural, verb/noun, tense).
3. Mental image (question 9): use it to add visual and emotional colour to the vision.
4. Positioning: decide whether the company wants to be a SPECIALIST or a GENERALIST and what its differentiator is.

# OUTPUT FORMAT

Return pure JSON (no markdown) with:
- "vision_inspirational": string (8-14 words, no metrics, inspiring)
- "vision_measurable": string (8-14 words, with a metric or quantifiable target)
- "keywords": array with ALL the keywords from question 10
- "insights": array with 2-3 short insights about the strategic profile
- "notes": string with one concise remark about the strategic positioning identified

Remember: the statements must focus on the IMPACT the company wants to make and the DESTINATION it seeks, not the activities it performs."""

REWRITE_SYSTEM_PROMPT = "You are an expert in company vision statements. Return pure JSON only."

REWRITE_HEADERS: dict[str, str] = {
    "shorter": "Rewrite the following visions to be SHORTER (8-10 words max each):",
    "more_options": "Create 3 VARIATIONS of each vision below (keep the essence and the keywords):",
    "shorter_term": "Adapt the visions below to the SHORT TERM (1-2 years):",
}

_REWRITE_FORMATS: dict[str, str] = {
    "shorter": """{
  "vision_inspirational": "shorter version",
  "vision_measurable": "shorter version"
}""",
    "more_options": """{
  "vision_inspirational": "best inspirational variation",
  "vision_measurable": "best measurable variation",
  "variations": {
    "inspirational": ["var1", "var2", "var3"],
    "measurable": ["var1", "var2", "var3"]
  }
}""",
    "shorter_term": """{
  "vision_inspirational": "short-term version",
  "vision_measurable": "short-term version"
}""",
}


def build_answers_context(answers: Mapping[int, str]) -> str:
    """One line per question, in question order."""
    lines = ["# CLIENT ANSWERS:", ""]
    for question in QUESTIONS:
        lines.append(f"{question.number}. {question.label}: {answers[question.number]}")
    return "\n".join(lines)


def build_analysis_messages(answers: Mapping[int, str]) -> list[dict[str, str]]:
    """Messages for the one-shot analyze request.

    Args:
        answers: {question_number: answer_text} for all ten questions
    """
    user_prompt = "\n".join(
        [
            build_answers_context(answers),
            "",
            "# ADDITIONAL INSTRUCTIONS:",
            "- Pay special attention to the words that repeat across the answers above",
            f"- The words from question {KEYWORDS_QUESTION} must be PRIORITIZED when building the vision",
            f"- The mental image from question {MENTAL_IMAGE_QUESTION} should inspire the emotional tone of the vision",
            "- Identify the strategic positioning (specialist vs generalist)",
            "",
            "Now, based on this information, write the two vision statements (inspirational and measurable).",
        ]
    )
    return [
        {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


def build_rewrite_messages(mode: str, vision_inspirational: str, vision_measurable: str) -> list[dict[str, str]]:
    """Messages for a rewrite of the current vision pair.

    Raises:
        ValueError: If mode is not a known rewrite mode
    """
    if mode not in REWRITE_HEADERS:
        raise ValueError(f"Unknown rewrite mode: {mode}. Valid modes: {sorted(REWRITE_HEADERS)}")

    label = "Original " if mode == "more_options" else ""
    user_prompt = (
        f"{REWRITE_HEADERS[mode]}\n\n"
        f"{label}Inspirational: {vision_inspirational}\n"
        f"{label}Measurable: {vision_measurable}\n\n"
        f"Return JSON:\n{_REWRITE_FORMATS[mode]}"
    )
    return [
        {"role": "system", "content": REWRITE_SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


def user_content(messages: Sequence[Mapping[str, str]]) -> str:
    """Concatenated user-role content of a message list."""
    return "\n".join(m["content"] for m in messages if m.get("role") == "user")
