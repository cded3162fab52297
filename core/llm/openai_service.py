"""
OpenAI Service - assistant replies using the OpenAI chat completions API.
"""
from typing import Dict, List, Optional
import logging
import re

import openai
from openai import OpenAI
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity import RetryCallState
from core.llm.interfaces import ReplyGenerator
from core.llm.system_prompts import (
    ASSISTANT_REPLY_SYSTEM_PROMPT,
    EMPTY_PROMPT_REPLY,
    FALLBACK_REPLY,
)

logger = logging.getLogger(__name__)

_ASSISTANT_MENTION = re.compile(r"@claude", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Retry helpers
# ---------------------------------------------------------------------------

def _log_retry(retry_state: RetryCallState) -> None:
    """Log a warning before each retry sleep."""
    exc = retry_state.outcome.exception()
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        "Transient API error (attempt %s). Waiting %.1fs before retry. Details: %s",
        retry_state.attempt_number, wait, exc,
    )


def _llm_retry(**kwargs):
    """Return a tenacity @retry decorator for LLM API calls."""
    return retry(
        retry=retry_if_exception_type((
            openai.RateLimitError,
            openai.APITimeoutError,
            openai.APIConnectionError,
            openai.InternalServerError,
        )),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        stop=stop_after_attempt(3),
        before_sleep=_log_retry,
        reraise=True,
        **kwargs,
    )


def strip_assistant_mention(text: str) -> str:
    return _ASSISTANT_MENTION.sub("", text or "").strip()


def build_user_message(prompt: str, conversation_context: Optional[List[Dict[str, str]]]) -> str:
    """Prefix the question with the post's earlier comments, if any."""
    lines = [
        f"{c.get('name') or 'Someone'}: {c.get('comment', '')}"
        for c in (conversation_context or [])
    ]
    if not lines:
        return prompt
    context = "\n".join(lines)
    return (
        f"Here are the previous comments on this post for context:\n{context}"
        f"\n\nNow someone is asking you:\n{prompt}"
    )


class OpenAIReplyService(ReplyGenerator):
    """
    OpenAI-backed reply generator.

    Transient API errors are retried; anything still failing yields a canned reply.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: str = "gpt-4o-mini",
        max_tokens: int = 300,
        temperature: float = 0.7,
        client: Optional[OpenAI] = None,
    ):
        if client is None:
            client_kwargs = {}
            if api_key:
                client_kwargs['api_key'] = api_key
            if base_url:
                client_kwargs['base_url'] = base_url
            client = OpenAI(**client_kwargs)

        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    @_llm_retry()
    def _complete(self, messages: List[dict]) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        return (response.choices[0].message.content or "").strip()

    def generate_reply(
        self,
        prompt: str,
        conversation_context: Optional[List[Dict[str, str]]] = None,
        group_context: Optional[List[dict]] = None,
    ) -> str:
        question = strip_assistant_mention(prompt)
        if not question:
            return EMPTY_PROMPT_REPLY

        text = build_user_message(question, conversation_context)
        if group_context:
            user_content = [{"type": "text", "text": text}, *group_context]
        else:
            user_content = text

        messages = [
            {"role": "system", "content": ASSISTANT_REPLY_SYSTEM_PROMPT},
            {"role": "user", "content": user_content},
        ]

        try:
            reply = self._complete(messages)
        except (openai.OpenAIError, IndexError, AttributeError) as e:
            logger.error(f"Error generating assistant reply: {e}")
            return FALLBACK_REPLY

        logger.info(f"Assistant reply generated ({self.model}, {len(reply)} chars)")
        return reply or FALLBACK_REPLY
