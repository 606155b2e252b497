"""Keyword-matched canned reply engine."""

import asyncio
from typing import Dict, List, Sequence, Tuple, TYPE_CHECKING

import structlog

from .base import ResponseEngine
from ...config.locales import Language, localized

if TYPE_CHECKING:
    from ...state.session_manager import Message


logger = structlog.get_logger()


# Ordered (keywords, reply) pairs; the first rule with a keyword contained in
# the lower-cased user message wins.
KEYWORD_REPLIES: Dict[Language, List[Tuple[Tuple[str, ...], str]]] = {
    Language.FR: [
        (
            ("bonjour", "salut"),
            "Bonjour ! Comment vous sentez-vous aujourd'hui ? Je suis là pour vous écouter "
            "et vous soutenir.",
        ),
        (
            ("triste", "déprimé"),
            "Je suis désolé d'apprendre que vous vous sentez mal. Voulez-vous parler de ce qui "
            "vous préoccupe ? Rappelez-vous qu'il est normal de ne pas se sentir bien parfois, "
            "et le fait de tendre la main est un premier pas courageux.",
        ),
        (
            ("anxieux", "stressé"),
            "L'anxiété est courante. Essayons de comprendre ce qui cause ces sentiments. Cela "
            "vous aiderait-il de prendre quelques respirations profondes ensemble ? Inspirez "
            "pendant 4 temps, retenez pendant 4, et expirez pendant 6. Cela peut aider à "
            "calmer votre système nerveux.",
        ),
        (
            ("heureux", "bien"),
            "Je suis content d'apprendre que vous allez bien ! Quelles choses positives se sont "
            "produites récemment dans votre vie ? Célébrer les petites victoires est important "
            "pour notre bien-être mental.",
        ),
        (
            ("merci",),
            "Je vous en prie. Je suis là pour vous soutenir chaque fois que vous avez besoin de "
            "quelqu'un à qui parler. Votre santé mentale est importante.",
        ),
    ],
    Language.EN: [
        (
            ("hello", "hi"),
            "Hello! How are you feeling today? I'm here to listen and support you.",
        ),
        (
            ("sad", "depressed"),
            "I'm sorry to hear you're feeling down. Would you like to talk about what's "
            "troubling you? Remember that it's okay to not be okay sometimes, and reaching out "
            "is a brave first step.",
        ),
        (
            ("anxious", "stressed"),
            "Feeling anxious is common. Let's try to understand what's causing these feelings. "
            "Would it help to take a few deep breaths together? Breathe in for 4 counts, hold "
            "for 4, and exhale for 6. This can help calm your nervous system.",
        ),
        (
            ("happy", "good"),
            "I'm glad to hear you're doing well! What positive things have been happening in "
            "your life recently? Celebrating small victories is important for our mental "
            "wellbeing.",
        ),
        (
            ("thank",),
            "You're welcome. I'm here to support you whenever you need someone to talk to. "
            "Your mental health matters.",
        ),
    ],
}

FALLBACK_REPLIES: Dict[Language, str] = {
    Language.FR: (
        "Merci de partager cela avec moi. Comment cette situation vous fait-elle vous sentir ? "
        "Comprendre nos émotions est une étape importante pour le bien-être mental. Je suis là "
        "pour vous écouter et vous aider à traiter ces sentiments."
    ),
    Language.EN: (
        "Thank you for sharing that with me. How does this situation make you feel? "
        "Understanding our emotions is an important step in mental wellness. I'm here to "
        "listen and help you process these feelings."
    ),
    Language.ES: (
        "Gracias por compartir esto conmigo. ¿Cómo te hace sentir esta situación? Estoy aquí "
        "para escucharte y apoyarte."
    ),
    Language.IT: (
        "Grazie per aver condiviso questo con me. Come ti fa sentire questa situazione? Sono "
        "qui per ascoltarti e sostenerti."
    ),
    Language.DE: (
        "Danke, dass du das mit mir teilst. Wie fühlst du dich in dieser Situation? Ich bin "
        "hier, um dir zuzuhören und dich zu unterstützen."
    ),
    Language.AR: (
        "شكرًا لمشاركتك هذا معي. كيف يجعلك هذا الموقف تشعر؟ أنا هنا للاستماع إليك ودعمك."
    ),
}


def canned_reply(user_text: str, language: Language) -> str:
    """Pick the canned reply for a user message in the given language."""
    text = user_text.lower()
    for keywords, reply in KEYWORD_REPLIES.get(language, []):
        if any(keyword in text for keyword in keywords):
            return reply
    return localized(FALLBACK_REPLIES, language)


class CannedResponseEngine(ResponseEngine):
    """
    Deterministic reference responder.

    Waits a fixed simulated latency and answers from a per-language keyword
    table, falling back to a generic empathetic reply.
    """

    def __init__(self, latency: float = 1.0):
        self.latency = latency
        self.replies_generated = 0
        self.is_generating = False

    async def generate_reply(self, history: Sequence["Message"], language: Language) -> str:
        if not history:
            raise ValueError("Cannot generate a reply for an empty history")

        self.is_generating = True
        try:
            if self.latency > 0:
                await asyncio.sleep(self.latency)
            reply = canned_reply(history[-1].content, language)
        finally:
            self.is_generating = False

        self.replies_generated += 1
        logger.debug("Canned reply generated", language=language.value, length=len(reply))
        return reply

    def get_status(self) -> dict:
        return {
            "provider": "canned",
            "latency": self.latency,
            "is_generating": self.is_generating,
            "replies_generated": self.replies_generated,
        }
