"""
LLM gateway
Builds task prompts, calls an OpenAI-compatible chat-completion endpoint and
routes to rule-based fallbacks once the circuit breaker has opened
"""

import json
import re
import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence

import httpx

from ..config import ConfigurationError, get_config
from ..data.base import utcnow
from ..data.cache import TTLCache
from ..persistence import SettingsStore
from ..utils import get_logger
from . import fallbacks
from .prompts import (
    SYSTEM_PROMPTS,
    PromptType,
    build_condition_analysis_prompt,
    build_decision_prompt,
    build_market_data_prompt,
    build_notification_prompt,
    build_question_prompt,
    build_research_plan_prompt,
    build_research_synthesis_prompt,
    build_task_analysis_prompt,
)

logger = get_logger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class LLMRequestError(Exception):
    """Remote completion call failed"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class CircuitState(Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"


class CircuitBreaker:
    """
    Two-state breaker guarding remote LLM calls

    ENABLED -> DISABLED when a call fails and the failure count reaches the
    threshold, or immediately on trip(). There is no automatic way back:
    only reset() re-enables, and the gateway calls it solely from
    update_config().
    """

    def __init__(self, failure_threshold: int = 1):
        self.failure_threshold = failure_threshold
        self._state = CircuitState.ENABLED
        self._consecutive_failures = 0
        self._reason: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    @property
    def is_open(self) -> bool:
        """True once remote calls are disabled"""
        return self.state is CircuitState.DISABLED

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._consecutive_failures

    @property
    def reason(self) -> Optional[str]:
        with self._lock:
            return self._reason

    def record_failure(self, reason: str) -> bool:
        """Count a failed call; returns True if this failure opened the breaker"""
        with self._lock:
            self._consecutive_failures += 1
            if self._state is CircuitState.ENABLED and self._consecutive_failures >= self.failure_threshold:
                self._state = CircuitState.DISABLED
                self._reason = reason
                return True
            return False

    def record_success(self):
        with self._lock:
            self._consecutive_failures = 0

    def trip(self, reason: str):
        """Disable remote calls unconditionally"""
        with self._lock:
            self._state = CircuitState.DISABLED
            self._reason = reason

    def reset(self):
        with self._lock:
            self._state = CircuitState.ENABLED
            self._consecutive_failures = 0
            self._reason = None


class LLMProcessor:
    """
    Task-specific LLM calls with caching and graceful degradation

    Any failure, a missing key or an open breaker yields the deterministic
    fallback for the prompt type instead of an exception.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        store: Optional[SettingsStore] = None,
        failure_threshold: int = 1,
        clock: Callable[[], float] = time.time
    ):
        self.config = get_config()
        llm_config = self.config.llm

        self.api_key: str = llm_config.api_key
        self.base_url: str = llm_config.base_url
        self.model: str = llm_config.model
        self.temperature = llm_config.temperature
        self.max_tokens = llm_config.max_tokens

        self.client = client
        self.store = store
        self.circuit = CircuitBreaker(failure_threshold)
        self._clock = clock
        self.cache: TTLCache[Any] = TTLCache(
            max_size=self.config.cache.llm_max_entries,
            ttl_seconds=None,
            clock=clock,
            name="llm"
        )

    @property
    def remote_disabled(self) -> bool:
        return self.circuit.is_open

    @property
    def failure_count(self) -> int:
        return self.circuit.consecutive_failures

    async def connect(self):
        if not self.client:
            self.client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.system.http_timeout_seconds)
            )

    async def disconnect(self):
        if self.client:
            await self.client.aclose()
            self.client = None

    def initialize(self, store: Optional[SettingsStore] = None):
        """Load persisted endpoint settings over the environment defaults"""
        if store is not None:
            self.store = store
        if self.store is None:
            return

        try:
            saved = self.store.load_settings()
        except Exception as e:
            logger.warning(f"Could not load LLM settings: {e}")
            return

        self.api_key = saved.get("llm_api_key") or self.api_key
        self.base_url = saved.get("llm_base_url") or self.base_url
        self.model = saved.get("llm_model") or self.model

    def update_config(self, api_key: str, base_url: Optional[str] = None, model: Optional[str] = None):
        """
        Install a new credential (and optionally endpoint/model)
        This is the only path that re-enables remote calls after the breaker opens
        """
        if not api_key:
            raise ConfigurationError("An API key is required to enable remote LLM calls")

        self.api_key = api_key
        if base_url:
            self.base_url = base_url
        if model:
            self.model = model
        self.circuit.reset()

        settings = {
            "llm_api_key": self.api_key,
            "llm_base_url": self.base_url,
            "llm_model": self.model
        }
        self.config.apply_settings(settings)
        if self.store is not None:
            self.store.update_settings(**settings)

        logger.info(f"LLM configured: model={self.model} url={self.base_url}")

    # Public operations

    async def process_task_input(self, user_input: str) -> Dict[str, Any]:
        cache_key = f"task_input_{user_input}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        result = await self._make_llm_call(
            build_task_analysis_prompt(user_input),
            PromptType.TASK_UNDERSTANDING,
            fallback=lambda: fallbacks.fallback_task_understanding(user_input)
        )
        self._store_in_cache(cache_key, result)
        return result

    async def analyze_condition_results(self, task: Dict[str, Any], data: Any, condition_results: Any) -> Dict[str, Any]:
        serialized = json.dumps(condition_results, sort_keys=True, default=str)
        cache_key = f"condition_analysis_{task.get('id')}_{serialized}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        result = await self._make_llm_call(
            build_condition_analysis_prompt(task, data, condition_results),
            PromptType.CONDITION_ANALYSIS,
            fallback=lambda: fallbacks.fallback_condition_analysis(condition_results)
        )
        self._store_in_cache(cache_key, result)
        return result

    async def interpret_market_data(self, symbol: str, data: Any, news_context: Sequence[Any] = ()) -> Dict[str, Any]:
        """Never cached; confidence reflects data completeness only"""
        analysis = await self._make_llm_call(
            build_market_data_prompt(symbol, data, news_context),
            PromptType.DATA_INTERPRETATION,
            fallback=lambda: fallbacks.default_market_analysis(data)
        )
        return {
            "symbol": symbol,
            "analysis": analysis,
            "timestamp": utcnow().isoformat(),
            "confidence": fallbacks.calculate_confidence_score(data, clock=self._clock)
        }

    async def generate_notification_content(self, task: Any, trigger_event: str, data: Any) -> str:
        result = await self._make_llm_call(
            build_notification_prompt(task, trigger_event, data),
            PromptType.NOTIFICATION_CONTENT,
            fallback=lambda: fallbacks.fallback_notification(task, trigger_event, data)
        )
        return self._as_text(result)

    async def decide_next_action(self, task: Any, current_state: Any, historical_data: Any) -> Dict[str, Any]:
        return await self._make_llm_call(
            build_decision_prompt(task, current_state, historical_data),
            PromptType.DECISION_MAKING
        )

    async def research_plan(self, query: str) -> Dict[str, Any]:
        return await self._make_llm_call(
            build_research_plan_prompt(query),
            PromptType.TASK_UNDERSTANDING,
            fallback=lambda: fallbacks.fallback_task_understanding(query)
        )

    async def research_synthesize(self, context: str) -> Dict[str, Any]:
        return await self._make_llm_call(
            build_research_synthesis_prompt(context),
            PromptType.DATA_INTERPRETATION
        )

    async def answer_question(self, question: str) -> Dict[str, Any]:
        return await self._make_llm_call(
            build_question_prompt(question),
            PromptType.DATA_INTERPRETATION,
            fallback=lambda: {
                "text": "No answer available: the language model is not reachable",
                "fallback": True
            }
        )

    async def health_check(self) -> Dict[str, Any]:
        if not self.api_key:
            return {"status": "no_key", "message": "No API key configured"}
        if self.remote_disabled:
            return {"status": "disabled", "message": self.circuit.reason or "Remote calls disabled"}

        started = self._clock()
        await self._make_llm_call("Test connection", PromptType.TASK_UNDERSTANDING)
        if self.remote_disabled:
            return {"status": "degraded", "message": self.circuit.reason}
        return {"status": "healthy", "response_time_ms": int((self._clock() - started) * 1000)}

    # Internals

    def fallback_processing(self, prompt_type: PromptType, prompt: str) -> Dict[str, Any]:
        if prompt_type is PromptType.TASK_UNDERSTANDING:
            return fallbacks.fallback_task_understanding(prompt)
        if prompt_type is PromptType.CONDITION_ANALYSIS:
            return fallbacks.fallback_condition_analysis()
        if prompt_type is PromptType.DATA_INTERPRETATION:
            return fallbacks.fallback_data_interpretation()
        if prompt_type is PromptType.DECISION_MAKING:
            return fallbacks.fallback_decision_making()
        return {"text": "Processing unavailable", "parsed": False, "fallback": True}

    async def _make_llm_call(
        self,
        prompt: str,
        prompt_type: PromptType,
        fallback: Optional[Callable[[], Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        def degrade() -> Dict[str, Any]:
            return fallback() if fallback else self.fallback_processing(prompt_type, prompt)

        if not self.api_key or self.remote_disabled:
            return degrade()

        try:
            result = await self._post_completion(prompt, prompt_type)
        except Exception as e:
            logger.warning(f"LLM API call failed: {e}")
            if self.circuit.record_failure(str(e)):
                logger.warning("Disabling remote LLM calls for the rest of this session")
            return degrade()

        self.circuit.record_success()
        return result

    async def _post_completion(self, prompt: str, prompt_type: PromptType) -> Dict[str, Any]:
        if not self.client:
            await self.connect()

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPTS[prompt_type]},
                {"role": "user", "content": prompt}
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens
        }

        response = await self.client.post(
            self.base_url,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json"
            },
            json=payload
        )

        if response.status_code in (400, 401):
            self.circuit.trip(f"HTTP {response.status_code}")
            logger.warning(f"LLM endpoint returned HTTP {response.status_code}; disabling remote LLM calls")
            raise LLMRequestError(
                f"LLM API error: {response.status_code} {response.reason_phrase}".strip(),
                status_code=response.status_code
            )
        if response.status_code >= 400:
            raise LLMRequestError(
                f"LLM API error: {response.status_code} {response.reason_phrase}".strip(),
                status_code=response.status_code
            )

        try:
            body = response.json()
        except ValueError:
            return self._text_result(response.text)
        return self.parse_llm_response(body)

    def parse_llm_response(self, response: Any) -> Dict[str, Any]:
        """Decode choices[0].message.content as JSON, else wrap the raw text"""
        try:
            content = response["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            logger.warning("Failed to parse LLM response; using plain text fallback")
            return self._text_result("Unable to process LLM response")

        if not isinstance(content, str):
            content = "" if content is None else str(content)

        text = content.strip()
        fenced = _CODE_FENCE.match(text)
        if fenced:
            text = fenced.group(1)

        try:
            decoded = json.loads(text)
        except ValueError:
            return self._text_result(content)

        if isinstance(decoded, dict):
            return decoded
        return {"data": decoded, "parsed": True, "timestamp": utcnow().isoformat()}

    @staticmethod
    def _text_result(text: str) -> Dict[str, Any]:
        return {"text": text, "parsed": False, "timestamp": utcnow().isoformat()}

    @staticmethod
    def _as_text(result: Any) -> str:
        if isinstance(result, dict):
            for key in ("text", "notification", "message", "content"):
                if isinstance(result.get(key), str):
                    return result[key]
            return json.dumps(result, default=str)
        return str(result)

    def _store_in_cache(self, key: str, value: Dict[str, Any]):
        # Fallback answers would mask a later working remote call
        if value and not value.get("fallback"):
            self.cache.put(key, value)
