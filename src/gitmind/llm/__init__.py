"""Inference integration for GitMind.

- client: LiteLLM wrapper (completion, speech, video jobs)
- gateway: budgeted, timed, shape-validated operations
- prompts: system prompts and prompt builders
"""

from gitmind.llm.client import LLMClient, LLMError, LLMResponse, VideoJob, create_client
from gitmind.llm.gateway import AnalysisGateway, parse_structured, strip_code_fences

__all__ = [
    "AnalysisGateway",
    "LLMClient",
    "LLMError",
    "LLMResponse",
    "VideoJob",
    "create_client",
    "parse_structured",
    "strip_code_fences",
]
