"""Supported languages and localized UI strings."""

from enum import Enum
from typing import Dict, Mapping, Optional, TypeVar


T = TypeVar("T")


class Language(str, Enum):
    """Closed set of language tags used for UI text and replies."""

    FR = "fr-FR"
    EN = "en-US"
    ES = "es-ES"
    DE = "de-DE"
    IT = "it-IT"
    AR = "ar-SA"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Language":
        """Map a raw tag to a Language, falling back to the default."""
        if isinstance(value, cls):
            return value
        for language in cls:
            if language.value == value:
                return language
        return DEFAULT_LANGUAGE


DEFAULT_LANGUAGE = Language.FR


def localized(table: Mapping[Language, T], language: Optional[Language]) -> T:
    """Look up a language-keyed table; the default language is the fallback arm."""
    if language in table:
        return table[language]
    return table[DEFAULT_LANGUAGE]


DEFAULT_TITLES: Dict[Language, str] = {
    Language.FR: "Nouvelle Conversation",
    Language.EN: "New Conversation",
    Language.ES: "Nueva Conversación",
    Language.IT: "Nuova Conversazione",
    Language.DE: "Neues Gespräch",
    Language.AR: "محادثة جديدة",
}

GREETINGS: Dict[Language, str] = {
    Language.EN: (
        "Hello! I'm MindCareAI, your mental wellness assistant. How are you feeling today? "
        "You can talk to me about whatever's on your mind, and I'll do my best to help and "
        "support you. What would you like to discuss?"
    ),
    Language.FR: (
        "Bonjour ! Je suis MindCareAI, votre assistant de bien-être mental. Comment vous "
        "sentez-vous aujourd'hui ? Vous pouvez me parler de ce qui vous préoccupe, et je ferai "
        "de mon mieux pour vous aider et vous soutenir. De quoi aimeriez-vous discuter ?"
    ),
    Language.ES: (
        "¡Hola! Soy MindCareAI, tu asistente de bienestar mental. ¿Cómo te sientes hoy? "
        "Puedes hablarme de lo que te preocupa, y haré todo lo posible para ayudarte y "
        "apoyarte. ¿De qué te gustaría hablar?"
    ),
    Language.IT: (
        "Ciao! Sono MindCareAI, il tuo assistente per il benessere mentale. Come ti senti oggi? "
        "Puoi parlarmi di qualsiasi cosa ti preoccupi, e farò del mio meglio per aiutarti e "
        "supportarti. Di cosa vorresti parlare?"
    ),
    Language.DE: (
        "Hallo! Ich bin MindCareAI, dein Assistent für mentales Wohlbefinden. Wie fühlst du "
        "dich heute? Du kannst mit mir über alles sprechen, was dir auf dem Herzen liegt, und "
        "ich werde mein Bestes tun, um dir zu helfen. Worüber möchtest du sprechen?"
    ),
    Language.AR: (
        "مرحبًا! أنا MindCareAI، مساعدك للصحة النفسية. كيف تشعر اليوم؟ يمكنك التحدث معي "
        "عما يشغل بالك، وسأبذل قصارى جهدي لمساعدتك ودعمك. عمّ تود التحدث؟"
    ),
}

SYSTEM_PROMPTS: Dict[Language, str] = {
    Language.EN: (
        "You are MindCareAI, a mental health assistant designed to provide empathetic support "
        "and guidance. Be compassionate, listen actively, and prioritize user well-being, while "
        "being clear that you are an AI assistant, not a replacement for professional mental "
        "health care."
    ),
    Language.FR: (
        "Vous êtes MindCareAI, un assistant de santé mentale conçu pour fournir un soutien et "
        "des conseils empathiques. Soyez compatissant, écoutez activement et priorisez le "
        "bien-être de l'utilisateur, tout en étant clair que vous êtes un assistant IA, et non "
        "un remplaçant pour des soins de santé mentale professionnels."
    ),
    Language.ES: (
        "Eres MindCareAI, un asistente de salud mental diseñado para brindar apoyo y "
        "orientación empática. Sé compasivo, escucha activamente y prioriza el bienestar del "
        "usuario, dejando claro que eres un asistente de IA, no un reemplazo de la atención "
        "profesional de salud mental."
    ),
    Language.IT: (
        "Sei MindCareAI, un assistente per la salute mentale progettato per fornire supporto "
        "empatico e guida. Sii compassionevole, ascolta attivamente e dai priorità al "
        "benessere dell'utente, chiarendo che sei un assistente AI, non un sostituto "
        "dell'assistenza professionale per la salute mentale."
    ),
    Language.DE: (
        "Du bist MindCareAI, ein Assistent für psychische Gesundheit, der empathische "
        "Unterstützung und Beratung bietet. Sei mitfühlend, höre aktiv zu und priorisiere das "
        "Wohlbefinden des Nutzers, während du deutlich machst, dass du ein KI-Assistent bist "
        "und kein Ersatz für professionelle psychische Gesundheitsversorgung."
    ),
    Language.AR: (
        "أنت MindCareAI، مساعد للصحة النفسية مصمم لتقديم الدعم والتوجيه التعاطفي. كن رحيمًا، "
        "واستمع بنشاط، وأعط الأولوية لرفاهية المستخدم، مع التوضيح أنك مساعد ذكاء اصطناعي، "
        "ولست بديلاً عن رعاية الصحة النفسية المهنية."
    ),
}

# Notification texts keyed by message key, then by language
NOTIFICATION_MESSAGES: Dict[str, Dict[Language, str]] = {
    "voice.unavailable": {
        Language.FR: "La reconnaissance vocale n'est pas disponible sur cet appareil.",
        Language.EN: "Speech recognition is not available on this device.",
        Language.ES: "El reconocimiento de voz no está disponible en este dispositivo.",
        Language.IT: "Il riconoscimento vocale non è disponibile su questo dispositivo.",
        Language.DE: "Spracherkennung ist auf diesem Gerät nicht verfügbar.",
        Language.AR: "التعرف على الصوت غير متاح على هذا الجهاز.",
    },
    "voice.start_failed": {
        Language.FR: "Impossible de démarrer la reconnaissance vocale. Réessayez.",
        Language.EN: "Could not start speech recognition. Please try again.",
        Language.ES: "No se pudo iniciar el reconocimiento de voz. Inténtalo de nuevo.",
        Language.IT: "Impossibile avviare il riconoscimento vocale. Riprova.",
        Language.DE: "Spracherkennung konnte nicht gestartet werden. Bitte erneut versuchen.",
        Language.AR: "تعذر بدء التعرف على الصوت. حاول مرة أخرى.",
    },
    "voice.reconnecting": {
        Language.FR: "Connexion perdue, reconnexion en cours...",
        Language.EN: "Connection lost, reconnecting...",
        Language.ES: "Conexión perdida, reconectando...",
        Language.IT: "Connessione persa, riconnessione in corso...",
        Language.DE: "Verbindung verloren, neuer Verbindungsversuch...",
        Language.AR: "انقطع الاتصال، جارٍ إعادة الاتصال...",
    },
    "voice.recognition_error": {
        Language.FR: "Erreur de reconnaissance vocale.",
        Language.EN: "Speech recognition error.",
        Language.ES: "Error de reconocimiento de voz.",
        Language.IT: "Errore di riconoscimento vocale.",
        Language.DE: "Fehler bei der Spracherkennung.",
        Language.AR: "خطأ في التعرف على الصوت.",
    },
    "voice.reconnect_exhausted": {
        Language.FR: "Impossible de rétablir la connexion. L'écoute est arrêtée.",
        Language.EN: "Could not reconnect. Listening has stopped.",
        Language.ES: "No se pudo reconectar. La escucha se ha detenido.",
        Language.IT: "Impossibile riconnettersi. L'ascolto è stato interrotto.",
        Language.DE: "Keine Verbindung möglich. Das Zuhören wurde beendet.",
        Language.AR: "تعذرت إعادة الاتصال. توقف الاستماع.",
    },
    "chat.reply_failed": {
        Language.FR: "Une erreur est survenue lors de la génération de la réponse.",
        Language.EN: "Something went wrong while generating a reply.",
        Language.ES: "Se produjo un error al generar la respuesta.",
        Language.IT: "Si è verificato un errore durante la generazione della risposta.",
        Language.DE: "Beim Erstellen der Antwort ist ein Fehler aufgetreten.",
        Language.AR: "حدث خطأ أثناء إنشاء الرد.",
    },
    "auth.login_success": {
        Language.FR: "Connexion réussie.",
        Language.EN: "Signed in successfully.",
        Language.ES: "Sesión iniciada correctamente.",
        Language.IT: "Accesso effettuato.",
        Language.DE: "Erfolgreich angemeldet.",
        Language.AR: "تم تسجيل الدخول بنجاح.",
    },
    "auth.register_success": {
        Language.FR: "Compte créé avec succès.",
        Language.EN: "Account created successfully.",
        Language.ES: "Cuenta creada correctamente.",
        Language.IT: "Account creato con successo.",
        Language.DE: "Konto erfolgreich erstellt.",
        Language.AR: "تم إنشاء الحساب بنجاح.",
    },
    "auth.failed": {
        Language.FR: "Échec de l'authentification.",
        Language.EN: "Authentication failed.",
        Language.ES: "Error de autenticación.",
        Language.IT: "Autenticazione non riuscita.",
        Language.DE: "Anmeldung fehlgeschlagen.",
        Language.AR: "فشلت المصادقة.",
    },
}
