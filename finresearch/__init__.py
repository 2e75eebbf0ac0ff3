"""
finresearch
Financial research assistant: quotes, news and LLM-backed analysis with graceful fallback
"""

__version__ = "0.1.0"
__author__ = "finresearch Team"

from . import config, data, llm, orchestration, persistence, utils

__all__ = ["config", "data", "llm", "orchestration", "persistence", "utils"]
