"""Keyword-based classification of media generation requests.

The classifier is a pure function: it lower-cases the utterance, looks for
an action verb together with a video or image keyword, and strips the
request wording to produce the prompt sent to the media provider. Video is
checked before image, so an utterance matching both keyword sets is a
video request.
"""

import re
from dataclasses import dataclass
from typing import Final, Literal

IntentKind = Literal["text", "image", "video"]

VIDEO_KEYWORDS: Final[tuple[str, ...]] = ("video", "animate", "animation", "moving", "footage", "clip", "movie")

IMAGE_KEYWORDS: Final[tuple[str, ...]] = (
    "image",
    "picture",
    "photo",
    "illustration",
    "draw",
    "paint",
    "visualize",
    "design",
    "logo",
    "artwork",
    "sketch",
    "render",
)

ACTION_WORDS: Final[tuple[str, ...]] = ("generate", "create", "make", "produce", "build", "show me")

DEMONSTRATIVES: Final[tuple[str, ...]] = ("this", "these")

# With reference images attached, a short follow-up like "make this pop" is an edit request
SHORT_UTTERANCE_CHARS: Final[int] = 100

_POLITENESS_PREFIX = re.compile(r"^(can you|could you|please|would you)", re.IGNORECASE)
_QUESTION_MARKS = re.compile(r"\?")

_VIDEO_RULES: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"generate|create|make|produce|build|show me", re.IGNORECASE),
    re.compile(r"a?\s*video\s*(of)?", re.IGNORECASE),
)

_IMAGE_RULES: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"generate|create|make|draw|produce|build|show me", re.IGNORECASE),
    re.compile(r"a?n?\s*(image|picture|photo|illustration|drawing|painting)\s*(of)?", re.IGNORECASE),
)


@dataclass(frozen=True)
class Intent:
    """Classification result for one utterance."""

    kind: IntentKind
    clean_prompt: str | None = None

    @property
    def is_media(self) -> bool:
        return self.kind != "text"


def _contains_any(text: str, terms: tuple[str, ...]) -> bool:
    return any(term in text for term in terms)


def _contains_word(text: str, words: tuple[str, ...]) -> bool:
    return any(re.search(rf"\b{re.escape(word)}\b", text) for word in words)


def clean_prompt(utterance: str, kind: Literal["image", "video"]) -> str:
    """Strip politeness, action verbs and the media noun phrase from a request.

    Falls back to the original utterance when nothing is left.
    """
    rules = _VIDEO_RULES if kind == "video" else _IMAGE_RULES

    cleaned = _POLITENESS_PREFIX.sub("", utterance)
    for rule in rules:
        cleaned = rule.sub("", cleaned)
    cleaned = _QUESTION_MARKS.sub("", cleaned)
    cleaned = re.sub(r"\s{2,}", " ", cleaned).strip()

    return cleaned or utterance


def classify(utterance: str, has_reference_images: bool = False) -> Intent:
    """Decide whether an utterance asks for text, an image or a video.

    Args:
        utterance: Raw user input
        has_reference_images: Whether images are attached to (or recently
            shared before) this utterance

    Returns:
        The intent, with a cleaned prompt for media requests
    """
    lowered = utterance.lower()
    has_action = _contains_any(lowered, ACTION_WORDS)

    if has_action and _contains_any(lowered, VIDEO_KEYWORDS):
        return Intent(kind="video", clean_prompt=clean_prompt(utterance, "video"))

    if has_action and _contains_any(lowered, IMAGE_KEYWORDS):
        return Intent(kind="image", clean_prompt=clean_prompt(utterance, "image"))

    if (
        has_reference_images
        and len(utterance.strip()) < SHORT_UTTERANCE_CHARS
        and (has_action or _contains_word(lowered, DEMONSTRATIVES))
    ):
        return Intent(kind="image", clean_prompt=clean_prompt(utterance, "image"))

    return Intent(kind="text")
