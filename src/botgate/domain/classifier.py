"""Deterministic message classification.

NO LLM. Case-insensitive substring match against fixed keyword sets,
checked in a fixed priority order. Matching is not tokenized: "contest"
contains "test" and therefore counts as a quiz keyword.

Security: NEVER log raw text (PII).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .models import Category, Message

# English and French trigger words, as used by the deployed chatbots.
KEYWORDS: Mapping[Category, tuple[str, ...]] = {
    Category.CLIENT: (
        "support",
        "help",
        "customer service",
        "assistance",
        "problem",
        "issue",
        "complaint",
        "service client",
        "aide",
        "problème",
    ),
    Category.EDUCATION: (
        "learn",
        "study",
        "course",
        "education",
        "school",
        "homework",
        "assignment",
        "question",
        "apprendre",
        "étudier",
        "cours",
        "éducation",
        "école",
        "devoir",
        "exercice",
    ),
    Category.QUIZ: (
        "quiz",
        "game",
        "test",
        "play",
        "challenge",
        "question",
        "answer",
        "jeu",
        "défi",
        "réponse",
        "questionnaire",
    ),
}

# "question" is in both the education and quiz sets; quiz wins.
DEFAULT_PRIORITY: tuple[Category, ...] = (Category.QUIZ, Category.EDUCATION, Category.CLIENT)
DEFAULT_CATEGORY = Category.CLIENT
DEFAULT_MEDIA_CATEGORY = Category.EDUCATION


@dataclass(frozen=True)
class Classifier:
    """The decision table: keyword sets in priority order plus a media rule.

    Attributes:
        priority: Categories whose keyword sets are checked, first match wins.
        default: Category for text that matches nothing (including "").
        media_category: Category for every non-text message, whatever its
            media id or mime type.
    """

    priority: tuple[Category, ...] = DEFAULT_PRIORITY
    default: Category = DEFAULT_CATEGORY
    media_category: Category = DEFAULT_MEDIA_CATEGORY
    keywords: Mapping[Category, tuple[str, ...]] = field(default_factory=lambda: KEYWORDS)

    def __post_init__(self) -> None:
        if len(set(self.priority)) != len(self.priority):
            raise ValueError("classifier priority contains duplicates")
        missing = [c for c in self.priority if c not in self.keywords]
        if missing:
            raise ValueError(f"no keyword set for {missing}")

    @classmethod
    def from_names(cls, priority: Iterable[str], media_category: str) -> Classifier:
        """Build from configuration strings. Raises ValueError on unknown names."""
        return cls(
            priority=tuple(Category.parse(name) for name in priority),
            media_category=Category.parse(media_category),
        )

    def classify_text(self, text: str) -> Category:
        lowered = text.lower()
        for category in self.priority:
            if any(keyword in lowered for keyword in self.keywords[category]):
                return category
        return self.default

    def classify(self, message: Message) -> Category:
        if not message.is_text:
            return self.media_category
        return self.classify_text(message.text_body or "")


_default_classifier = Classifier()


def classify(message: Message) -> Category:
    """Classify with the default decision table."""
    return _default_classifier.classify(message)
