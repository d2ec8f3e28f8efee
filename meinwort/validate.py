"""
API key validation with latency measurement.

Quick checks of each provider's model listing, run once at startup so a
bad key shows up on the console instead of as a failed recording.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Optional

import requests

from .types import ConfigSnapshot


GROQ_MODELS_URL = "https://api.groq.com/openai/v1/models"
GEMINI_MODELS_URL = "https://generativelanguage.googleapis.com/v1beta/models"


@dataclass
class ValidationResult:
    """Result of an API key validation test."""
    valid: bool
    latency_ms: Optional[int] = None
    error: Optional[str] = None


# Shared session for connection reuse
_session = requests.Session()


def _check_listing(request, invalid_statuses) -> ValidationResult:
    try:
        start = time.perf_counter()
        response = request()
        latency = int((time.perf_counter() - start) * 1000)
    except requests.Timeout:
        return ValidationResult(valid=False, error="Timeout")
    except requests.RequestException as e:
        return ValidationResult(valid=False, error=str(e)[:50])

    if response.status_code == 200:
        return ValidationResult(valid=True, latency_ms=latency)
    elif response.status_code in invalid_statuses:
        return ValidationResult(valid=False, error="Invalid key")
    else:
        return ValidationResult(valid=False, error=f"HTTP {response.status_code}")


def validate_groq_key(api_key: str, session: Optional[requests.Session] = None) -> ValidationResult:
    """Validate Groq API key with a minimal request."""
    if not api_key or len(api_key) < 10:
        return ValidationResult(valid=False, error="Key too short")

    session = session or _session
    return _check_listing(
        lambda: session.get(GROQ_MODELS_URL, headers={"Authorization": f"Bearer {api_key}"}, timeout=10),
        invalid_statuses=(401,),
    )


def validate_gemini_key(api_key: str, session: Optional[requests.Session] = None) -> ValidationResult:
    """Validate Gemini API key with a minimal request."""
    if not api_key or len(api_key) < 10:
        return ValidationResult(valid=False, error="Key too short")

    session = session or _session
    return _check_listing(
        lambda: session.get(GEMINI_MODELS_URL, params={"key": api_key}, timeout=10),
        invalid_statuses=(400, 403),
    )


def validate_keys(config: ConfigSnapshot) -> Dict[str, ValidationResult]:
    """Validate every configured key in parallel and print the outcome."""
    checks = {}
    if config.groq_api_key:
        checks["groq"] = (validate_groq_key, config.groq_api_key)
    if config.gemini_api_key:
        checks["gemini"] = (validate_gemini_key, config.gemini_api_key)

    results: Dict[str, ValidationResult] = {}
    if not checks:
        print("[Keys] No API keys configured (set GROQ_API_KEY in ~/.meinwort/.env)")
        return results

    with ThreadPoolExecutor(max_workers=len(checks)) as executor:
        futures = {name: executor.submit(fn, key) for name, (fn, key) in checks.items()}
        for name, future in futures.items():
            results[name] = future.result()

    for name, result in results.items():
        if result.valid:
            print(f"[Keys] {name}: ok ({result.latency_ms}ms)")
        else:
            print(f"[Keys] {name}: {result.error}")
    return results
