# ABOUTME: Exception definitions for the LLM-backed agents (validator, meta-event generator, narrator).
# ABOUTME: Transport failures surface as LLMCallFailed; malformed output uses GenerationFormatError.


class LLMCallFailed(Exception):
    """Raised when the OpenAI API call fails after retries (including timeouts)"""
    pass
