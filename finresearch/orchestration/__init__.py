"""
Orchestration layer for research and Q&A runs
"""

from .research import ResearchAgent, ResearchReport, is_question

__all__ = [
    'ResearchAgent',
    'ResearchReport',
    'is_question'
]
