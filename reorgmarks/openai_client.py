from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from openai import OpenAI
from rich.console import Console

from .config import ProviderConfig
from .errors import AIServiceError, MalformedResponseError
from .log import get_logger

log = get_logger(__name__)

T = TypeVar("T")

# Upper bound on a provider-supplied Retry-After; the run is sequential.
MAX_RETRY_AFTER_S = 60.0


@dataclass
class OpenAIResult:
    text: str
    ms: int


def classify_batch(
    *,
    provider: ProviderConfig,
    system_prompt: str,
    user_payload: str,
    batch_label: str,
) -> OpenAIResult:
    return _chat_text(
        provider=provider,
        system_prompt=system_prompt,
        user_payload=user_payload,
        phase_label="classify",
        batch_label=batch_label,
    )


def suggest_category_groups(
    *,
    provider: ProviderConfig,
    system_prompt: str,
    user_payload: str,
    batch_label: str = "all",
) -> OpenAIResult:
    return _chat_text(
        provider=provider,
        system_prompt=system_prompt,
        user_payload=user_payload,
        phase_label="group",
        batch_label=batch_label,
    )


def _chat_text(
    *,
    provider: ProviderConfig,
    system_prompt: str,
    user_payload: str,
    phase_label: str,
    batch_label: str,
) -> OpenAIResult:
    t0 = time.time()
    client = _make_client(provider)
    log.info(
        "%s request start (%s %s): model=%s timeout_s=%d",
        provider.name.upper(),
        phase_label,
        batch_label,
        provider.model,
        provider.timeout_s,
    )

    def _call():
        return client.chat.completions.create(
            model=provider.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_payload},
            ],
            temperature=provider.temperature,
        )

    resp = _call_with_backoff(
        call=_call,
        provider=provider.name,
        max_retries=provider.max_retries,
        base_delay_s=provider.retry_delay_s,
        phase_label=phase_label,
        batch_label=batch_label,
    )
    ms = int((time.time() - t0) * 1000)
    text = _extract_message_text(resp)
    if not text:
        raise MalformedResponseError(f"{provider.name.upper()} returned no content for {phase_label} {batch_label}")
    log.info(
        "%s request done (%s %s): chars=%d elapsed_ms=%d",
        provider.name.upper(),
        phase_label,
        batch_label,
        len(text),
        ms,
    )
    return OpenAIResult(text=text, ms=ms)


def _make_client(provider: ProviderConfig) -> OpenAI:
    # SDK-level retries are disabled; _call_with_backoff is the single retry policy.
    kwargs: dict[str, Any] = {"api_key": provider.api_key, "timeout": provider.timeout_s, "max_retries": 0}
    if provider.base_url:
        kwargs["base_url"] = provider.base_url
    return OpenAI(**kwargs)


def _call_with_backoff(
    *,
    call: Callable[[], T],
    provider: str,
    max_retries: int,
    base_delay_s: float,
    phase_label: str,
    batch_label: str,
) -> T:
    """Run ``call`` with at most ``max_retries`` retries and linear backoff.

    Errors are normalized to AIServiceError. Quota, auth and fatal errors are
    raised on the first occurrence; rate-limit and transient errors are retried.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return call()
        except Exception as e:
            err = AIServiceError.from_exception(e, provider)
            if not err.should_retry or attempt > max_retries:
                if err.kind.retryable:
                    log.warning("%s call failed after %d attempts (%s %s).", provider.upper(), attempt, phase_label, batch_label)
                raise err from e
            delay = _retry_delay_seconds(exc=e, attempt=attempt, base_delay_s=base_delay_s)
            log.warning(
                "%s call failed (%s %s, %s): %s. Retrying %d/%d in %.1fs.",
                provider.upper(),
                phase_label,
                batch_label,
                err.kind.value,
                err.details.message,
                attempt,
                max_retries,
                delay,
            )
            time.sleep(delay)


def _retry_delay_seconds(*, exc: BaseException, attempt: int, base_delay_s: float) -> float:
    linear = base_delay_s * attempt
    retry_after = _retry_after_header(exc)
    if retry_after is not None:
        return max(linear, min(retry_after, MAX_RETRY_AFTER_S))
    return linear


def _retry_after_header(exc: BaseException) -> Optional[float]:
    resp = getattr(exc, "response", None)
    headers = getattr(resp, "headers", None)
    if not headers:
        return None
    raw = headers.get("retry-after")
    if raw is None:
        return None
    try:
        return max(0.0, float(raw))
    except (TypeError, ValueError):
        return None


def _extract_message_text(resp: Any) -> str:
    choices = getattr(resp, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    return content.strip() if isinstance(content, str) else ""


def debug_log_response_text(*, title: str, text: str) -> None:
    if not log.isEnabledFor(logging.DEBUG):
        return
    console = Console(stderr=True)
    console.print(f"[bold yellow]{title}[/bold yellow]")
    console.print(text, markup=False, highlight=False)
