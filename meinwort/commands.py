"""
Voice command normalization and offline fast-track.

Recognized commands arrive in many phrasings ("fass zusammen", "summary",
"Wie viele Wörter?"). They are collapsed onto a small canonical
instruction vocabulary; the deterministic ones (counting, whitespace and
punctuation cleanup) are answered locally without a network call.
"""

import re
from typing import Callable, Dict, Optional


SUMMARIZE = "zusammenfassen"
TRANSLATE_EN = "ins Englische übersetzen"
FORMAL = "formeller machen"
SIMPLIFY = "vereinfachen"
SHORTEN = "kürzer machen"
CORRECT = "Rechtschreibung und Grammatik korrigieren"
COUNT_WORDS = "Zähle die Anzahl der Wörter in diesem Text"
COUNT_CHARS = "Zähle die Anzahl der Zeichen in diesem Text"
COUNT_SENTENCES = "Zähle die Anzahl der Sätze in diesem Text"
NORMALIZE_WHITESPACE = "Leerzeichen bereinigen"
NORMALIZE_PUNCTUATION = "Satzzeichen bereinigen"


COMMAND_MAPPINGS: Dict[str, str] = {
    # Summarize
    "fass zusammen": SUMMARIZE,
    "fasse zusammen": SUMMARIZE,
    "fass mir das zusammen": SUMMARIZE,
    "zusammenfassung": SUMMARIZE,
    "summary": SUMMARIZE,
    "summarize": SUMMARIZE,

    # Translate
    "übersetze": TRANSLATE_EN,
    "translate": TRANSLATE_EN,
    "englisch": TRANSLATE_EN,

    # Formal
    "mach formeller": FORMAL,
    "formell": FORMAL,
    "professionell": FORMAL,

    # Simplify
    "vereinfach": SIMPLIFY,
    "einfacher": SIMPLIFY,
    "simple": SIMPLIFY,

    # Shorten
    "kürzer": SHORTEN,
    "kürze": SHORTEN,
    "reduzieren": SHORTEN,

    # Correct
    "korrigier": CORRECT,
    "korrigiere": CORRECT,
    "fehler": CORRECT,

    # Count words
    "wieviel wörter": COUNT_WORDS,
    "wie viele wörter": COUNT_WORDS,
    "wieviel wörter sind enthalten": COUNT_WORDS,
    "wie viele wörter sind enthalten": COUNT_WORDS,
    "wörter zählen": COUNT_WORDS,
    "anzahl wörter": COUNT_WORDS,
    "count words": COUNT_WORDS,

    # Count characters
    "wieviel zeichen": COUNT_CHARS,
    "wie viele zeichen": COUNT_CHARS,
    "zeichen zählen": COUNT_CHARS,
    "count characters": COUNT_CHARS,

    # Count sentences
    "wieviel sätze": COUNT_SENTENCES,
    "wie viele sätze": COUNT_SENTENCES,
    "sätze zählen": COUNT_SENTENCES,
    "count sentences": COUNT_SENTENCES,

    # Whitespace / punctuation cleanup
    "leerzeichen entfernen": NORMALIZE_WHITESPACE,
    "leerzeichen bereinigen": NORMALIZE_WHITESPACE,
    "leerzeichen korrigieren": NORMALIZE_WHITESPACE,
    "doppelte leerzeichen entfernen": NORMALIZE_WHITESPACE,
    "fix whitespace": NORMALIZE_WHITESPACE,
    "satzzeichen bereinigen": NORMALIZE_PUNCTUATION,
    "satzzeichen korrigieren": NORMALIZE_PUNCTUATION,
    "zeichensetzung korrigieren": NORMALIZE_PUNCTUATION,
    "fix punctuation": NORMALIZE_PUNCTUATION,
}


def _lookup_key(raw_command: str) -> str:
    """Lowercase, trim and drop the punctuation Whisper likes to append."""
    key = raw_command.lower().strip()
    key = re.sub(r"[\s.!?,;:\"'„“”]+$", "", key)
    key = re.sub(r"^[\s\"'„“”]+", "", key)
    return " ".join(key.split())


def normalize_command(raw_command: str) -> str:
    """Map a recognized phrasing to its canonical instruction; unknown commands pass through."""
    return COMMAND_MAPPINGS.get(_lookup_key(raw_command), raw_command.strip())


def count_words(text: str) -> int:
    return len(text.split())


def count_sentences(text: str) -> int:
    parts = re.split(r"[.!?]+", text)
    return sum(1 for p in parts if p.strip())


def normalize_whitespace(text: str) -> str:
    """Collapse runs of spaces/tabs, trim lines, keep at most one blank line."""
    lines = [" ".join(line.split()) for line in text.splitlines()]
    collapsed = "\n".join(lines).strip()
    return re.sub(r"\n{3,}", "\n\n", collapsed)


def normalize_punctuation(text: str) -> str:
    """Remove space before punctuation, dedupe , ; : and ensure a space after them."""
    text = re.sub(r"[ \t]+([,.;:!?])", r"\1", text)
    text = re.sub(r"([,;:])\1+", r"\1", text)
    text = re.sub(r"([,;:])(?=[^\s\d/])", r"\1 ", text)
    return text


FAST_TRACK: Dict[str, Callable[[str], str]] = {
    COUNT_WORDS: lambda text: str(count_words(text)),
    COUNT_CHARS: lambda text: str(len(text)),
    COUNT_SENTENCES: lambda text: str(count_sentences(text)),
    NORMALIZE_WHITESPACE: normalize_whitespace,
    NORMALIZE_PUNCTUATION: normalize_punctuation,
}


def fast_track(instruction: str, source_text: str) -> Optional[str]:
    """Answer a canonical instruction locally, or None if it needs the LLM."""
    handler = FAST_TRACK.get(instruction)
    if handler is None:
        return None
    return handler(source_text)
