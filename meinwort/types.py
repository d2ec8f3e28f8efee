"""
Shared type definitions for MeinWort.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List


class Phase(str, Enum):
    """Lifecycle phase of the recording session. Exactly one is active."""
    IDLE = "idle"
    DETECTING = "detecting"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"
    REWRITING_TEXT = "rewriting_text"


class Mode(str, Enum):
    """What the recognized speech will be used for."""
    DICTATION = "dictation"
    COMMAND_ON_SELECTION = "command_on_selection"


@dataclass(frozen=True)
class AudioPayload:
    """Encoded recording handed from the capture device to transcription."""
    data: bytes
    mime_type: str          # e.g., "audio/wav"
    duration_ms: float


@dataclass(frozen=True)
class TranscriptionOptions:
    """Per-request Whisper parameters."""
    language: str = "de"
    temperature: float = 0.0
    prompt: str = ""


@dataclass
class TranscriptionResult:
    """Result of a transcription, or a local placeholder that never hit the API."""
    text: str
    language: Optional[str] = None
    confidence: Optional[float] = None
    duration_ms: float = 0.0
    is_placeholder: bool = False


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of one selection detection."""
    mode: Mode
    selection_text: str = ""


@dataclass(frozen=True)
class LastOutput:
    """Text we wrote to the clipboard ourselves, with the clock reading at write time."""
    text: str
    written_at: float


@dataclass
class RewriteOutcome:
    """Result of applying a voice command to selected text."""
    text: str
    command: str            # As recognized
    instruction: str        # Canonical instruction actually used
    source: str             # "fast_track" | "cache" | provider name


@dataclass
class SessionState:
    """
    Process-wide session state, owned by one RecordingOrchestrator.

    Created once in IDLE with all optional fields empty. Only the
    orchestrator and its collaborators (detector, echo guard) mutate it.
    """
    phase: Phase = Phase.IDLE
    mode: Mode = Mode.DICTATION
    selection_snapshot: Optional[str] = None
    last_output: Optional[LastOutput] = None
    last_error: Optional[str] = None

    # Presentation support
    recording_indicator: bool = False   # Optimistic "recording" flag
    last_result: Optional[str] = None
    last_command: Optional[str] = None
    session_id: int = 0


@dataclass(frozen=True)
class StatusSnapshot:
    """Read-only view of SessionState for the presentation layer."""
    phase: Phase
    mode: Mode
    recording: bool
    last_error: Optional[str]
    last_result: Optional[str]
    last_command: Optional[str]


@dataclass
class ConfigSnapshot:
    """
    Configuration for the running engine, built by Config.snapshot().
    Not frozen; the engine only reads it, so config changes mid-session
    don't cause inconsistency.
    """
    # Transcription
    language: str
    transcription_model: str
    groq_api_key: str
    gemini_api_key: str

    # Audio
    sample_rate: int
    input_device: str

    # Detection
    echo_window_seconds: float
    detection_debounce_ms: float
    copy_settle_ms: float
    artifact_patterns: List[str] = field(default_factory=list)

    # Retry policy
    max_attempts: int = 3
    backoff_seconds: float = 0.5
    temperature_step: float = 0.3
    max_temperature: float = 1.0

    # Silence policy
    min_duration_ms: float = 300
    frame_ms: float = 100
    rms_threshold: float = 0.01
    max_silent_ratio: float = 0.8
    max_upload_bytes: int = 25 * 1024 * 1024

    # Command processing
    cache_ttl_seconds: float = 300
    cache_prefix_chars: int = 200
    rewrite_providers: List[str] = field(default_factory=lambda: ["groq", "gemini"])
    editing_prompt: str = ""
