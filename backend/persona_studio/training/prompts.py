"""Prompt templates for persona synthesis."""

from __future__ import annotations

from persona_studio.models.entities import PersonaProfile

TEXT_ANALYSIS_PROMPT = """Analyze this person's text content and extract:
1. Personality traits and characteristics
2. Common phrases and expressions they use
3. Communication style and tone
4. Emotional patterns
5. Important memories and experiences mentioned
6. Values and beliefs expressed

Return a detailed JSON analysis with these categories."""

SPEECH_ANALYSIS_PROMPT = """Analyze this person's speech patterns from transcribed audio:
1. Speaking style and rhythm
2. Vocabulary preferences
3. Emotional expression in speech
4. Common verbal habits or filler words
5. Tone and mood patterns
6. Voice characteristics that can be described

Return a JSON analysis focusing on speech and voice patterns."""

IMAGE_ANALYSIS_PROMPT = (
    "Analyze this image and describe: 1) The person's facial expression and body language, "
    "2) The setting/environment, 3) Any activities or interactions visible, "
    "4) The overall mood or emotion conveyed. Be specific but respectful."
)

PROFILE_SYNTHESIS_PROMPT = """Create a comprehensive AI persona profile from the provided analysis data.
Generate a unified personality description, list of common phrases, speech patterns,
emotional characteristics, and key memories. Format as JSON with these fields:
- personality: string (detailed personality description)
- speechPatterns: string[] (how they speak and express themselves)
- commonPhrases: string[] (specific phrases they commonly use)
- emotionalTone: string (overall emotional characteristics)
- memories: string[] (important memories and experiences)
- voiceCharacteristics: object with pitch, speed, tone"""

_SYSTEM_PROMPT_TEMPLATE = """You are embodying a specific person with these characteristics:

PERSONALITY: {personality}

SPEECH PATTERNS: {speech_patterns}

COMMON PHRASES: Use these naturally in conversation: {common_phrases}

EMOTIONAL TONE: {emotional_tone}

MEMORIES: Reference these experiences when relevant: {memories}

IMPORTANT: Always respond as this specific person, using their unique voice, mannerisms, and personality. Be authentic to their character while being helpful and emotionally supportive."""


def build_system_prompt(profile: PersonaProfile) -> str:
    """Embed the profile fields verbatim into a conversational system prompt."""
    return _SYSTEM_PROMPT_TEMPLATE.format(
        personality=profile.personality,
        speech_patterns=", ".join(profile.speech_patterns),
        common_phrases=", ".join(profile.common_phrases),
        emotional_tone=profile.emotional_tone,
        memories="; ".join(profile.memories),
    )


__all__ = [
    "TEXT_ANALYSIS_PROMPT",
    "SPEECH_ANALYSIS_PROMPT",
    "IMAGE_ANALYSIS_PROMPT",
    "PROFILE_SYNTHESIS_PROMPT",
    "build_system_prompt",
]
