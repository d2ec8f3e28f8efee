"""
Remote endpoints for transcription and text rewriting.

Each provider holds its own client and exposes a single async call.
Failures are raised as EndpointError with a classification; providers
never retry on their own.
"""

from abc import ABC, abstractmethod

from ..types import AudioPayload, TranscriptionOptions, TranscriptionResult


class TranscriptionProvider(ABC):
    """
    Speech-to-text endpoint.

    Subclasses must implement transcribe() and raise EndpointError on failure.
    """

    name: str = "base"

    @abstractmethod
    async def transcribe(self, payload: AudioPayload, options: TranscriptionOptions) -> TranscriptionResult:
        """
        Transcribe one recording.

        Args:
            payload: Encoded audio
            options: Language, temperature and prompt for this attempt

        Returns:
            TranscriptionResult (text may be empty; the caller decides)
        """
        pass


class RewriteProvider(ABC):
    """
    Text-rewriting endpoint (LLM).

    Subclasses must implement rewrite() and raise EndpointError on failure.
    """

    name: str = "base"
    model: str = ""
    priority: int = 10      # Lower = preferred

    def is_available(self) -> bool:
        """Whether credentials are configured."""
        return True

    @abstractmethod
    async def rewrite(self, instruction: str, source_text: str) -> str:
        """Apply instruction to source_text and return only the edited text."""
        pass


DEFAULT_EDITING_PROMPT = """Du bist ein intelligenter Text-Verarbeitungsassistent. Du hilfst dabei, Texte nach spezifischen Anweisungen zu bearbeiten.

WICHTIGE REGELN:
1. Antworte IMMER in der gleichen Sprache wie der Original-Text
2. Behalte den Sinn und wichtige Informationen bei
3. Sei präzise und folge der Anweisung genau
4. Gib NUR den verarbeiteten Text zurück, keine Erklärungen oder zusätzliche Kommentare
5. Falls die Anweisung unklar ist, interpretiere sie bestmöglich im Kontext der Textbearbeitung"""


def build_rewrite_prompt(instruction: str, source_text: str) -> str:
    """User prompt shared by all rewrite providers."""
    return (
        f"ANWEISUNG: {instruction}\n\n"
        f"ORIGINAL-TEXT:\n{source_text}\n\n"
        "VERARBEITETER TEXT:"
    )
