from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

import requests

from ..errors import require_settings

logger = logging.getLogger(__name__)

MODEL_LOADING_STATUS = 503
# Upper bound on establishing the connection; the read budget is `timeout`.
CONNECT_TIMEOUT = 5


class InferenceError(Exception):
    """The inference provider answered with an error (or could not be reached)."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class InferenceTimeout(InferenceError):
    """Every attempt timed out or found the model still loading."""


class InferenceClient:
    """
    Thin client for a hosted text-generation endpoint (Hugging Face style).

    Retry policy: a 503 (model loading) or an attempt hitting the per-attempt
    timeout is retried up to `max_retries` times, sleeping
    `backoff_seconds * 2**attempt` between attempts. Any other HTTP error
    fails on the first attempt.

    `timeout` is handed to requests as a (connect, read) pair: connecting may
    take at most CONNECT_TIMEOUT seconds and `timeout` bounds each wait for
    bytes from the socket. It is not a wall-clock cap on a whole attempt, so a
    provider that keeps trickling data can hold one attempt longer than
    `timeout`.
    """

    def __init__(
        self,
        *,
        api_token: str,
        model: str,
        base_url: str = "https://api-inference.huggingface.co/models",
        timeout: float = 30,
        max_retries: int = 2,
        backoff_seconds: float = 1,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api_token = api_token
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(0, int(max_retries))
        self.backoff_seconds = backoff_seconds
        self.session = session or requests.Session()
        self.sleep = sleep

    @classmethod
    def from_config(cls, config, **kwargs) -> "InferenceClient":
        api_token, model = require_settings(config, "HF_API_TOKEN", "HF_MODEL")
        return cls(
            api_token=api_token,
            model=model,
            base_url=config.get("HF_API_URL") or "https://api-inference.huggingface.co/models",
            timeout=config.get("INFERENCE_TIMEOUT_SECONDS", 30),
            max_retries=config.get("INFERENCE_MAX_RETRIES", 2),
            backoff_seconds=config.get("INFERENCE_BACKOFF_SECONDS", 1),
            **kwargs,
        )

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.model}"

    def generate(
        self,
        prompt: str,
        *,
        max_new_tokens: int = 2048,
        temperature: float = 0.7,
        top_p: float = 0.95,
        instruct: bool = True,
    ) -> str:
        payload = {
            "inputs": f"<s>[INST] {prompt} [/INST]" if instruct else prompt,
            "parameters": {
                "max_new_tokens": max_new_tokens,
                "temperature": temperature,
                "top_p": top_p,
                "return_full_text": False,
            },
        }
        response = self._post(payload)
        try:
            body = response.json()
        except ValueError as e:
            raise InferenceError("Inference response is not JSON", status_code=response.status_code) from e
        return extract_generated_text(body)

    def chat(self, messages: list[dict], *, max_new_tokens: int = 512) -> str:
        return self.generate(
            format_chat_prompt(messages),
            max_new_tokens=max_new_tokens,
            instruct=False,
        ).strip()

    def _timeouts(self) -> tuple:
        return (min(CONNECT_TIMEOUT, self.timeout), self.timeout)

    def _post(self, payload: dict) -> requests.Response:
        headers = {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            try:
                response = self.session.post(
                    self.url, json=payload, headers=headers, timeout=self._timeouts()
                )
            except requests.Timeout:
                logger.warning(
                    "inference attempt %d/%d timed out after %ss", attempt + 1, attempts, self.timeout
                )
            except requests.RequestException as e:
                raise InferenceError(f"Inference request failed: {e}") from e
            else:
                if response.status_code == MODEL_LOADING_STATUS:
                    logger.info("model %s still loading (attempt %d/%d)", self.model, attempt + 1, attempts)
                elif not response.ok:
                    raise InferenceError(
                        f"Inference provider error: {response.status_code}",
                        status_code=response.status_code,
                        details=_error_details(response),
                    )
                else:
                    return response

            if attempt < self.max_retries:
                delay = self.backoff_seconds * (2 ** attempt)
                logger.info("retrying inference in %ss", delay)
                self.sleep(delay)

        raise InferenceTimeout(
            f"Inference model unavailable after {attempts} attempts",
            status_code=MODEL_LOADING_STATUS,
        )


def extract_generated_text(body: Any) -> str:
    """Read `generated_text` from either `[{...}]` or `{...}` responses."""
    if isinstance(body, list):
        body = body[0] if body else {}
    if isinstance(body, dict):
        return str(body.get("generated_text") or "")
    return ""


def _error_details(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return (response.text or "")[:500]


def format_chat_prompt(messages: list[dict]) -> str:
    """
    Render role/content messages as a Mistral-instruct conversation.

    The system message is folded into the first user turn; assistant turns
    close the preceding [INST] block.
    """
    system = "\n\n".join(m["content"] for m in messages if m.get("role") == "system")
    turns = [m for m in messages if m.get("role") in ("user", "assistant")]

    out = "<s>"
    pending_system = system
    for m in turns:
        if m["role"] == "user":
            content = m["content"]
            if pending_system:
                content = f"{pending_system}\n\n{content}"
                pending_system = ""
            out += f"[INST] {content} [/INST]"
        else:
            out += f" {m['content']}</s>"
    return out
