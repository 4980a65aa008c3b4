"""LLM-assisted triage of scan findings."""

from .llm import LLMClient
from .triage import LLMTriage

__all__ = ["LLMClient", "LLMTriage"]
