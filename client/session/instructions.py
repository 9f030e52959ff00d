"""
Language-tutor session builder.

Turns the learner's choices (language, class level, topic) into tutor
instructions, a voice, and a SessionConfig ready for connect().
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from constants import DEFAULT_OPENING_MESSAGE
from session.session_config import SessionConfig


@dataclass(frozen=True)
class ProficiencyLevel:
    level: str
    description: str
    guidelines: str


PROFICIENCY_LEVELS: Mapping[str, ProficiencyLevel] = {
    "1-2": ProficiencyLevel(
        level="novice",
        description="Novice Low-High",
        guidelines=(
            "Speak very slowly and clearly. Use simple, basic vocabulary that would be "
            "found in beginner textbooks. Use short sentences. Emphasize pronunciation "
            "of syllables. Use more formal, academic language. Avoid idioms or "
            "colloquialisms."
        ),
    ),
    "3-4": ProficiencyLevel(
        level="intermediate-low",
        description="Intermediate Low-Mid",
        guidelines=(
            "Speak at a moderate pace. Use vocabulary and sentence structures appropriate "
            "for intermediate learners. Ask simple questions and encourage responses. "
            "Use everyday topics and situations."
        ),
    ),
    "5-6": ProficiencyLevel(
        level="intermediate-mid",
        description="Intermediate Mid-High",
        guidelines=(
            "Speak at a normal pace. Use more complex sentence structures and varied "
            "vocabulary. Introduce different time frames in conversation. Connect ideas "
            "and encourage longer responses."
        ),
    ),
    "7-8": ProficiencyLevel(
        level="advanced-low",
        description="Advanced Low",
        guidelines=(
            "Speak at a natural pace. Use advanced vocabulary and complex sentence "
            "structures. Encourage explanations and opinions. Discuss abstract topics "
            "and current events."
        ),
    ),
    "ap-language": ProficiencyLevel(
        level="advanced-mid",
        description="Advanced Mid-High",
        guidelines=(
            "Speak at a natural, fluent pace. Use sophisticated vocabulary and advanced "
            "grammar structures. Discuss complex abstract topics. Encourage detailed "
            "analysis and extended discourse."
        ),
    ),
    "ap-literature": ProficiencyLevel(
        level="advanced-high",
        description="Advanced High-Superior",
        guidelines=(
            "Speak naturally with native-like fluency. Use advanced, nuanced vocabulary. "
            "Discuss literature, cultural topics, and complex abstract concepts. "
            "Encourage persuasive arguments and cultural analysis."
        ),
    ),
}

VOICE_BY_LANGUAGE: Mapping[str, str] = {
    "spanish": "alloy",
    "french": "shimmer",
    "vietnamese": "nova",
    "english": "echo",
}
FALLBACK_VOICE = "echo"


TUTOR_INSTRUCTIONS_TEMPLATE = """You are an AI language tutor helping a student learn {language}.

PROFICIENCY LEVEL: {description}
SPEAKING GUIDELINES: {guidelines}

CONVERSATION TOPIC: {topic}

RUBRIC CONTEXT: {rubric}

ADAPTIVE BEHAVIOR:
- Start at the indicated proficiency level
- Listen carefully to student responses to gauge actual ability
- If student struggles, simplify language and speak more slowly
- If student excels, gradually increase complexity and pace
- Always respond in {language}
- Provide gentle corrections when needed
- Keep the conversation engaging and educational

Begin the conversation by greeting the student in {language} and introducing the topic: "{topic}\""""


def voice_for_language(learning_language: str) -> str:
    return VOICE_BY_LANGUAGE.get(learning_language.strip().lower(), FALLBACK_VOICE)


def build_instructions(
    learning_language: str,
    class_level: str,
    conversation_prompt: str,
    *,
    has_rubric: bool = False,
) -> str:
    """
    Tutor system instructions for one conversation.

    Raises:
        ValueError if a field is missing or the class level is unknown.
    """
    missing = [
        name
        for name, value in (
            ("class_level", class_level),
            ("conversation_prompt", conversation_prompt),
            ("learning_language", learning_language),
        )
        if not value or not value.strip()
    ]
    if missing:
        raise ValueError(f"Missing required fields: {', '.join(missing)}")

    proficiency = PROFICIENCY_LEVELS.get(class_level)
    if proficiency is None:
        raise ValueError(
            f"Invalid class level: {class_level}. "
            f"Valid options are: {', '.join(PROFICIENCY_LEVELS)}"
        )

    rubric = (
        "Assess responses based on the provided rubric and adjust complexity accordingly."
        if has_rubric
        else "No rubric provided - use class level as primary guide."
    )
    return TUTOR_INSTRUCTIONS_TEMPLATE.format(
        language=learning_language,
        description=proficiency.description,
        guidelines=proficiency.guidelines,
        topic=conversation_prompt,
        rubric=rubric,
    )


def build_session_config(
    learning_language: str,
    class_level: str,
    conversation_prompt: str,
    *,
    has_rubric: bool = False,
    opening_message: str | None = DEFAULT_OPENING_MESSAGE,
    voice: str | None = None,
) -> SessionConfig:
    """
    SessionConfig for a tutoring conversation.

    opening_message=None leaves the first turn to the student.
    voice overrides the per-language default.
    """
    instructions = build_instructions(
        learning_language,
        class_level,
        conversation_prompt,
        has_rubric=has_rubric,
    )
    return SessionConfig(
        instructions=instructions,
        voice=voice or voice_for_language(learning_language),
        opening_message=opening_message,
    )
