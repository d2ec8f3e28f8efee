"""
MeinWort - Voice dictation and voice commands on selected text.

This package provides:
- Hotkey-driven recording with optimistic status feedback
- Selection detection by diffing the clipboard across a triggered copy
- Whisper transcription with escalating retries and silence pre-checks
- Voice commands applied to the selection (offline fast-track + LLM rewrite)
- Self-echo suppression so our own clipboard output is not re-processed

Main entry point: python -m meinwort
"""

__version__ = "0.2.0"
