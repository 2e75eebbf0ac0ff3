"""
LLM gateway: prompts, circuit breaker and rule-based fallbacks
"""

from .fallbacks import (
    calculate_confidence_score,
    default_market_analysis,
    fallback_task_understanding,
    fallback_condition_analysis
)
from .processor import CircuitBreaker, CircuitState, LLMProcessor, LLMRequestError
from .prompts import PromptType, SYSTEM_PROMPTS

__all__ = [
    'LLMProcessor',
    'LLMRequestError',
    'CircuitBreaker',
    'CircuitState',
    'PromptType',
    'SYSTEM_PROMPTS',
    'calculate_confidence_score',
    'default_market_analysis',
    'fallback_task_understanding',
    'fallback_condition_analysis'
]
