"""
System instructions and prompt templates for each LLM task
"""

import json
from enum import Enum
from typing import Any, Dict, Sequence

from .fallbacks import data_field


class PromptType(str, Enum):
    """Task kinds; each has its own system instruction and fallback"""
    TASK_UNDERSTANDING = "task_understanding"
    CONDITION_ANALYSIS = "condition_analysis"
    DATA_INTERPRETATION = "data_interpretation"
    DECISION_MAKING = "decision_making"
    NOTIFICATION_CONTENT = "notification_content"


SYSTEM_PROMPTS: Dict[PromptType, str] = {
    PromptType.TASK_UNDERSTANDING: """You are an AI assistant specialized in financial monitoring and task automation.

Analyze user input to extract key parameters for automated monitoring systems.
Focus on clarity, accuracy, and practical implementation.
Be specific about thresholds, conditions, and notification requirements.

Always return structured, JSON-parseable responses when possible.""",

    PromptType.CONDITION_ANALYSIS: """You are a financial monitoring analyst. Analyze condition check results with precision.

Consider:
- Market volatility and normal fluctuations
- Risk thresholds and alert appropriateness
- False positives vs false negatives
- Data quality and reliability

Provide actionable insights for automated financial alerts.""",

    PromptType.DATA_INTERPRETATION: """You are a financial data analyst specializing in real-time market interpretation.

Focus on:
- Price action significance
- Volume analysis
- News sentiment correlation
- Market trend identification
- Risk assessment

Provide clear, actionable market insights.""",

    PromptType.DECISION_MAKING: """You are an automated monitoring system making control decisions.

Consider:
- System reliability and uptime
- Risk management
- Resource optimization
- Error handling

Make practical, conservative decisions with safety as priority.""",

    PromptType.NOTIFICATION_CONTENT: """You are a financial notification specialist writing user alerts.

Guidelines:
- Clear and concise communication
- Avoid technical jargon when possible
- Provide actionable information
- Maintain professional tone
- Include relevant context

Create notifications that users can easily understand and act upon.""",
}


def _encode(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return str(value)


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, default=_encode)


def _task_name(task: Any) -> str:
    if isinstance(task, dict):
        return str(task.get("name") or task.get("id") or "task")
    return str(task)


def build_task_analysis_prompt(user_input: str) -> str:
    return f"""Analyze the following user input to extract monitoring parameters:

User Input: "{user_input}"

Please extract:
1. Task type (stock_monitor, news_monitor, general_alert)
2. Assets/symbols to monitor
3. Conditions to check (price thresholds, news keywords, etc.)
4. Notification preferences
5. Time constraints or frequencies

Return as JSON with the extracted information."""


def build_condition_analysis_prompt(task: Dict[str, Any], data: Any, results: Any) -> str:
    conditions = task.get("conditions") if isinstance(task, dict) else None
    return f"""Analyze these condition check results:

Task: {_task_name(task)}
Conditions checked: {_dump(conditions)}
Data collected: {_dump(data)}
Results: {_dump(results)}

Provide:
1. Which conditions were met/unmet
2. Whether any action should be triggered
3. Context analysis of the results
4. Confidence level in the analysis

Return as structured analysis."""


def build_market_data_prompt(symbol: str, data: Any, news_context: Sequence[Any]) -> str:
    headlines = []
    for article in list(news_context)[:5]:
        title = data_field(article, "title") or ""
        description = (data_field(article, "description") or "")[:100]
        headlines.append(f"{title}: {description}...")
    news_summary = "\n".join(headlines)
    price = data_field(data, "price")
    change = data_field(data, "change")
    change_percent = data_field(data, "change_percent")
    volume = data_field(data, "volume")

    return f"""Analyze market data for {symbol}:

Current Price: ${price}
Change: {change} ({change_percent}%)
Volume: {volume}
Recent News Context:
{news_summary}

Provide analysis of:
1. Current market sentiment
2. Recent performance trends
3. News impact assessment
4. Risk indicators
5. Recommended monitoring thresholds

Format as market analysis."""


def build_notification_prompt(task: Any, trigger_event: str, data: Any) -> str:
    return f"""Generate a notification for this event:

Task: {_task_name(task)}
Trigger: {trigger_event}
Data: {_dump(data)}

Create a concise, actionable notification that:
1. Explains what happened
2. Provides relevant context
3. Suggests next steps if appropriate

Keep it under 100 words, professional tone."""


def build_decision_prompt(task: Any, current_state: Any, historical_data: Any) -> str:
    return f"""Analyze current state and decide next action:

Task Context: {_dump(task)}
Current State: {_dump(current_state)}
Historical Data: {_dump(historical_data)}

Determine:
1. Should monitoring continue?
2. Any adjustments to conditions or thresholds?
3. Any additional data source needed?
4. Error state handling if applicable

Return structured decision."""


def build_research_plan_prompt(query: str) -> str:
    return (
        f"Create a 3-step research plan for: {query}. Steps must use: (1) News, "
        "(2) Price History 30d, (3) Synthesis. Return JSON."
    )


def build_research_synthesis_prompt(context: str) -> str:
    return f"Synthesize a concise research note (<=120 words) based on: {context}"


def build_question_prompt(question: str) -> str:
    return (
        "Answer the following question step by step, then give the final answer "
        f"on its own line.\n\nQuestion: {question}\n\n"
        'Return JSON as {"answer": "...", "steps": ["..."]}.'
    )
