"""The fixed ten-question interview catalogue.

Pure domain data with no external dependencies.
"""
from dataclasses import dataclass

from vision_builder.core.exceptions import InvalidQuestionError


@dataclass(frozen=True)
class Question:
    """One interview question and the short label used in analysis prompts."""

    number: int
    text: str
    label: str


QUESTIONS: tuple[Question, ...] = (
    Question(1, "What business segment are you in?", "Business segment"),
    Question(2, "What does your company do?", "Main product or service"),
    Question(3, "At its core, what is this segment a business of?", "What the business is about"),
    Question(4, "Who is your company's target audience?", "Ideal customer"),
    Question(5, "Where do you see your company in 3 to 5 years?", "Long-term outlook"),
    Question(6, "In which direction do you want to point your efforts?", "Direction of effort"),
    Question(7, "How will you measure your company's success?", "Success measure"),
    Question(8, "If you made the cover of Forbes, what would the story be?", "Magazine cover headline"),
    Question(
        9,
        "When you imagine your company achieving its vision, what image comes to mind?",
        "Mental image of the company's future",
    ),
    Question(
        10,
        "From the answers above, which keywords repeat and carry the most meaning?",
        "Keywords that represent the company's essence",
    ),
)

TOTAL_QUESTIONS = len(QUESTIONS)

# Questions with extra weight in the analysis prompt
MENTAL_IMAGE_QUESTION = 9
KEYWORDS_QUESTION = 10


def validate_question_number(question_number: int) -> int:
    """Return question_number unchanged or raise InvalidQuestionError."""
    if not isinstance(question_number, int) or isinstance(question_number, bool):
        raise InvalidQuestionError(question_number)
    if not 1 <= question_number <= TOTAL_QUESTIONS:
        raise InvalidQuestionError(question_number)
    return question_number


def get_question(question_number: int) -> Question:
    """Look up a question by its 1-based number."""
    return QUESTIONS[validate_question_number(question_number) - 1]
