"""
Rule-based stand-ins for each LLM task plus deterministic confidence scoring
Used whenever the remote model is unavailable; every result carries fallback=True
"""

import re
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

SYMBOL_PATTERN = re.compile(r"\b[A-Z]{2,5}\b")
PRICE_PATTERN = re.compile(r"\$?(\d+(?:\.\d+)?)")
THRESHOLD_PATTERN = re.compile(r"(over|above|below|under|>|<)\s*\$?(\d+(?:\.\d+)?)", re.IGNORECASE)

MAX_SYMBOLS = 3
FRESH_DATA_SECONDS = 300

# camelCase aliases as sent by browser-side callers
_FIELD_ALIASES = {
    "change_percent": "changePercent",
    "published_at": "publishedAt",
}


def data_field(data: Any, name: str) -> Any:
    """Read a field from a record object or a plain mapping"""
    if data is None:
        return None
    if isinstance(data, dict):
        if name in data:
            return data[name]
        alias = _FIELD_ALIASES.get(name)
        return data.get(alias) if alias else None
    return getattr(data, name, None)


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _epoch_seconds(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, (int, float)):
        # Millisecond epochs are 13 digits
        return value / 1000 if value > 1e11 else float(value)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def calculate_confidence_score(data: Any, clock: Callable[[], float] = time.time) -> float:
    """
    Data-completeness confidence, independent of any model output

    0.5 base, +0.2 positive price, +0.1 volume over 1000, +0.1 source tag,
    +0.1 timestamp within the last 5 minutes, capped at 1.0.
    Absent data (None) scores 0.1; an empty mapping keeps the base.
    """
    if data is None:
        return 0.1

    score = 0.5

    price = _as_float(data_field(data, "price"))
    if price is not None and price > 0:
        score += 0.2

    volume = _as_float(data_field(data, "volume"))
    if volume is not None and volume > 1000:
        score += 0.1

    if data_field(data, "source"):
        score += 0.1

    stamp = _epoch_seconds(data_field(data, "timestamp"))
    if stamp is not None and clock() - stamp < FRESH_DATA_SECONDS:
        score += 0.1

    return min(round(score, 2), 1.0)


def fallback_task_understanding(text: str) -> Dict[str, Any]:
    symbols = SYMBOL_PATTERN.findall(text)[:MAX_SYMBOLS]
    prices = [float(m) for m in PRICE_PATTERN.findall(text)][:MAX_SYMBOLS]
    thresholds = [
        {"operator": operator.lower(), "value": float(value)}
        for operator, value in THRESHOLD_PATTERN.findall(text)
    ]

    return {
        "task_type": "stock_monitor" if symbols else "general_alert",
        "symbols": symbols,
        "prices": prices,
        "thresholds": thresholds,
        "extracted": True,
        "fallback": True
    }


def _met_flags(results: Any) -> List[bool]:
    if isinstance(results, dict):
        values = list(results.values())
    elif isinstance(results, (list, tuple)):
        values = list(results)
    else:
        return []

    flags = []
    for value in values:
        if isinstance(value, dict):
            flags.append(bool(value.get("met", value.get("result"))))
        else:
            flags.append(bool(value))
    return flags


def fallback_condition_analysis(results: Any = None) -> Dict[str, Any]:
    flags = _met_flags(results)
    conditions_met = bool(flags) and all(flags)
    return {
        "conditions_met": conditions_met,
        "action_required": any(flags),
        "met_count": sum(flags),
        "total": len(flags),
        "confidence": 0.8 if flags else 0.5,
        "recommendations": ["Monitor trends closely", "Set up additional alerts"],
        "fallback": True
    }


def fallback_data_interpretation() -> Dict[str, Any]:
    return {
        "sentiment": "neutral",
        "trend": "stable",
        "risk_level": "medium",
        "recommendations": ["Continue monitoring"],
        "fallback": True
    }


def fallback_decision_making() -> Dict[str, Any]:
    return {
        "action": "continue_monitoring",
        "confidence": 0.7,
        "reasoning": "Fallback decision made",
        "fallback": True
    }


def fallback_notification(task: Any, trigger_event: str, data: Any = None) -> Dict[str, Any]:
    name = task.get("name") if isinstance(task, dict) else task
    text = f"{name or 'Alert'}: {trigger_event}"
    price = data_field(data, "price")
    if price is not None:
        symbol = data_field(data, "symbol")
        text += f" ({symbol} at ${price})" if symbol else f" (price ${price})"
    return {"text": text, "fallback": True}


def default_market_analysis(data: Any) -> Dict[str, Any]:
    """Sentiment from the absolute change, trend from the percent change"""
    change = _as_float(data_field(data, "change")) or 0.0
    change_percent = _as_float(data_field(data, "change_percent")) or 0.0

    sentiment = "neutral"
    if change > 0:
        sentiment = "bullish"
    elif change < -0.02:
        sentiment = "bearish"

    if change_percent > 2:
        trend = "strong_upward"
    elif change_percent < -2:
        trend = "strong_downward"
    else:
        trend = "stable"

    return {
        "sentiment": sentiment,
        "trend": trend,
        "recommendation": "Monitor closely",
        "confidence": 0.6,
        "fallback": True
    }
