"""FakeTextGenerator: Scenario-based test double for the TextGenerator protocol.

Provides deterministic responses for 4 named scenarios:
- happy_path: Well-formed analysis and rewrite payloads
- llm_failure: Every call fails with TextGenerationError
- timeout: Every call hangs until cancelled
- malformed: Every call returns text without a JSON object

Tests can also pass a ``script``: a list consumed one item per call, where an
item is a response string, an exception to raise, or a ``Delayed`` step.
"""

import asyncio
import json
from dataclasses import dataclass

from vision_builder.core.exceptions import TextGenerationError
from vision_builder.generation.prompts import REWRITE_HEADERS, user_content

HAPPY_ANALYSIS = {
    "vision_inspirational": "Be the most trusted partner transforming small farms into thriving sustainable businesses",
    "vision_measurable": "Help ten thousand family farms double their income sustainably by 2030",
    "keywords": ["sustainable", "family farms", "trust", "growth"],
    "insights": [
        "Specialist positioning around family-owned farms",
        "Differentiates on trust rather than price",
    ],
    "notes": "Specialist with a strong community-impact angle.",
}

HAPPY_REWRITES = {
    "shorter": {
        "vision_inspirational": "Be the trusted partner of thriving sustainable farms",
        "vision_measurable": "Double income for ten thousand farms by 2030",
    },
    "more_options": {
        "vision_inspirational": "Lead the sustainable transformation of family farms everywhere",
        "vision_measurable": "Grow ten thousand family farms sustainably by 2030",
        "variations": {
            "inspirational": [
                "Lead the sustainable transformation of family farms everywhere",
                "Be the heart of thriving sustainable family farming",
                "Make every family farm a sustainable success story",
            ],
            "measurable": [
                "Grow ten thousand family farms sustainably by 2030",
                "Double the income of ten thousand farms by 2030",
                "Reach ten thousand thriving sustainable farms within five years",
            ],
        },
    },
    "shorter_term": {
        "vision_inspirational": "Become the region's most trusted partner for sustainable farms",
        "vision_measurable": "Support five hundred family farms toward sustainable growth by 2027",
    },
}


@dataclass(frozen=True)
class Delayed:
    """Scripted step that waits before resolving.

    ``seconds=None`` waits until cancelled. ``result`` is returned, or raised
    when it is an exception.
    """

    seconds: float | None
    result: str | BaseException | None = None


class FakeTextGenerator:
    """Scenario-based test double for the TextGenerator protocol."""

    VALID_SCENARIOS = {"happy_path", "llm_failure", "timeout", "malformed"}

    def __init__(self, scenario: str = "happy_path", script: list | None = None):
        """Initialize FakeTextGenerator with a named scenario.

        Args:
            scenario: One of 'happy_path', 'llm_failure', 'timeout', 'malformed'
            script: Optional per-call steps consumed before the scenario applies

        Raises:
            ValueError: If scenario is not recognized
        """
        if scenario not in self.VALID_SCENARIOS:
            raise ValueError(f"Unknown scenario: {scenario}. Valid scenarios: {self.VALID_SCENARIOS}")
        self.scenario = scenario
        self.model = "fake-model"
        self.calls: list[list[dict[str, str]]] = []
        self._script = list(script or [])

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float | None = None,
        model: str | None = None,
    ) -> str:
        self.calls.append(messages)

        if self._script:
            return await self._play(self._script.pop(0))

        if self.scenario == "llm_failure":
            raise TextGenerationError("AI gateway error: 500", status_code=500)

        if self.scenario == "timeout":
            await asyncio.Event().wait()

        if self.scenario == "malformed":
            return "Sorry, I could not produce a vision for this company."

        return json.dumps(self._happy_payload(messages))

    async def _play(self, step: object) -> str:
        if isinstance(step, Delayed):
            if step.seconds is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(step.seconds)
            step = step.result
        if isinstance(step, BaseException):
            raise step
        return step  # type: ignore[return-value]

    def _happy_payload(self, messages: list[dict[str, str]]) -> dict:
        content = user_content(messages)
        for mode, header in REWRITE_HEADERS.items():
            if header in content:
                return HAPPY_REWRITES[mode]
        return HAPPY_ANALYSIS
