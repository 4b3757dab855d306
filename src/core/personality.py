"""
Reminder Assistant — Personalities.

Three fixed voices the assistant can speak in. A personality only changes
wording (and the style directive sent to the LLM), never behavior.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Personality(str, Enum):
    CALM = "calm"
    DIRECT = "direct"
    HYPE = "hype"


@dataclass(frozen=True)
class PersonalityProfile:
    selector: str               # numeric menu key
    label: str                  # menu text
    keywords: tuple[str, ...]   # free-text selection hints
    style: str                  # directive embedded in LLM prompts
    confirm_opener: str
    ask_prompt: str             # "what should I remember?" in this voice
    onboarding_done: str


PROFILES: dict[Personality, PersonalityProfile] = {
    Personality.CALM: PersonalityProfile(
        selector="1",
        label="🌿 Calm & gentle — soft nudges, no pressure",
        keywords=("calm", "gentle", "soft", "relax", "kind"),
        style=(
            "Speak in a calm, gentle and reassuring tone. Keep sentences soft, "
            "never pushy, and use at most one soothing emoji."
        ),
        confirm_opener="All set, no rush. 🌿",
        ask_prompt="No worries. What would you like me to help you remember? 🌿",
        onboarding_done="You're all set, {name}. I'll quietly keep track of things for you. 🌿",
    ),
    Personality.DIRECT: PersonalityProfile(
        selector="2",
        label="🎯 Direct & efficient — short and to the point",
        keywords=("direct", "short", "efficient", "brief", "straight", "concise"),
        style=(
            "Be direct and efficient. Use short, plain sentences, no small talk, "
            "no more than one emoji."
        ),
        confirm_opener="Done.",
        ask_prompt="What should I remember? Give me a task and a time.",
        onboarding_done="Setup complete, {name}. Send tasks, I'll handle the timing.",
    ),
    Personality.HYPE: PersonalityProfile(
        selector="3",
        label="🔥 Hype & motivating — energy and encouragement",
        keywords=("hype", "motivat", "energy", "energetic", "cheer", "fun", "excite"),
        style=(
            "Be upbeat, energetic and motivating, like an enthusiastic coach. "
            "Encourage the user and feel free to use a couple of emojis."
        ),
        confirm_opener="Let's GO! 🔥",
        ask_prompt="I'm ready when you are! 🔥 What do you want me to remember?",
        onboarding_done="Boom, {name}, we're officially a team! 🚀 Let's crush your to-dos!",
    ),
}


def get_personality(value: str | None) -> Personality:
    """Map a stored value to a Personality; anything unknown is calm."""
    try:
        return Personality(value)
    except ValueError:
        return Personality.CALM


def profile_for(value: str | Personality | None) -> PersonalityProfile:
    if isinstance(value, Personality):
        return PROFILES[value]
    return PROFILES[get_personality(value)]


def select_personality(text: str) -> Personality:
    """Interpret a reply to the personality menu.

    An exact numeric selector wins, then keyword containment in menu order.
    Anything else falls back to calm so onboarding never blocks here.
    """
    cleaned = text.strip().lower()
    for personality, profile in PROFILES.items():
        if cleaned == profile.selector:
            return personality
    for personality, profile in PROFILES.items():
        if any(keyword in cleaned for keyword in profile.keywords):
            return personality
    return Personality.CALM


def personality_menu() -> str:
    lines = [f"{p.selector}. {p.label}" for p in PROFILES.values()]
    return "\n".join(lines)
