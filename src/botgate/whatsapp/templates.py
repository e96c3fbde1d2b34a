"""Canned fallback replies (PII-free).

Sent to the end user when a message could not be forwarded to its chatbot
and the deployment runs in auto-reply mode. Texts are static per category.
"""

from botgate.domain.models import Category

FALLBACK_TEXTS: dict[Category, str] = {
    Category.CLIENT: (
        "Thanks for your message! Our support team is temporarily "
        "unavailable, but we have received your request and will get back "
        "to you as soon as possible."
    ),
    Category.EDUCATION: (
        "Thanks for your message! Our learning assistant is temporarily "
        "unavailable. Please send your question again in a few minutes."
    ),
    Category.QUIZ: (
        "Thanks for playing! The quiz is temporarily unavailable. "
        "Please try again in a few minutes."
    ),
}


def render_fallback(category: Category) -> str:
    """Acknowledgement text for a category whose chatbot could not be reached."""
    return FALLBACK_TEXTS[category]
