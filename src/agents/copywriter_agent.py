from typing import Any, List, Optional, Tuple

import openai

from src.specs.agents.copywriter import CaptionPrompt, CopywriterOutput
from src.specs.common.errors import GenerationFailed, ProviderTimeout
from src.shared.logging_utils import info as log_info, warning as log_warning
from src.tools.caption_json import parse_captions
from src.function_blueprints.agent_factory import create_chat_client
from .base import Agent


class CopywriterAgent(Agent):
    """Caption writer backed by a chat-completion client in JSON mode.

    Makes at most two sequential provider calls. Each reply goes through
    ``parse_captions`` (direct parse, then fence-stripped brace span); the
    second call is only issued after the first reply is unrecoverable and
    runs deterministic with a smaller token budget.
    """

    # (temperature, max tokens per requested caption)
    ATTEMPTS: Tuple[Tuple[float, int], ...] = ((0.6, 40), (0.0, 30))

    def __init__(self, client: Any, *, model: str) -> None:
        self._client = client
        self.model = model

    @classmethod
    def from_env(cls) -> "CopywriterAgent":
        client, model = create_chat_client()
        return cls(client, model=model)

    def _complete(self, prompt: CaptionPrompt, *, temperature: float, max_tokens: int) -> str:
        completion = self._client.chat.completions.create(
            model=self.model,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.user},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        choices = getattr(completion, "choices", None) or []
        if not choices:
            return "{}"
        message = getattr(choices[0], "message", None)
        return getattr(message, "content", None) or "{}"

    def run(self, prompt: CaptionPrompt, count: int, *, request_id: Optional[str] = None) -> CopywriterOutput:
        last_exc: Optional[Exception] = None
        for attempt, (temperature, tokens_per_caption) in enumerate(self.ATTEMPTS, start=1):
            max_tokens = count * tokens_per_caption
            try:
                raw = self._complete(prompt, temperature=temperature, max_tokens=max_tokens)
            except openai.APITimeoutError as exc:
                raise ProviderTimeout(
                    "Text provider timed out",
                    details={"attempt": attempt, "model": self.model},
                ) from exc
            except openai.OpenAIError as exc:
                last_exc = exc
                log_warning(
                    request_id,
                    "copywriter:provider_error",
                    attempt=attempt,
                    errorType=type(exc).__name__,
                    error=str(exc),
                )
                continue

            captions: Optional[List[str]] = parse_captions(raw)
            if captions is not None:
                log_info(
                    request_id,
                    "copywriter:captions_parsed",
                    attempt=attempt,
                    requested=count,
                    received=len(captions),
                )
                return CopywriterOutput(captions=captions, attempts=attempt, model=self.model)

            log_warning(
                request_id,
                "copywriter:attempt_failed",
                attempt=attempt,
                temperature=temperature,
                maxTokens=max_tokens,
                replyPreview=raw[:200],
            )

        raise GenerationFailed(
            "Text provider returned no valid captions",
            details={"attempts": len(self.ATTEMPTS), "model": self.model},
        ) from last_exc


__all__ = ["CopywriterAgent"]
