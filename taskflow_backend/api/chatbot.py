from __future__ import annotations

import logging

from django.conf import settings
from openai import OpenAI, OpenAIError

from .exceptions import InternalError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are the assistant of a collaborative task manager. Help users plan "
    "projects, break work into tasks and keep deadlines realistic. Be concise."
)


def get_chat_client() -> OpenAI:
    return OpenAI(
        base_url=settings.CHATBOT["BASE_URL"],
        api_key=settings.CHATBOT["API_KEY"],
    )


# PUBLIC_INTERFACE
def ask(message: str, history: list[dict] | None = None) -> str:
    """Send ``message`` (with prior turns) to the chat model and return its reply."""
    if not settings.CHATBOT.get("API_KEY"):
        raise InternalError("Chatbot is not configured.")

    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    for turn in history or []:
        messages.append({"role": turn["role"], "content": turn["content"]})
    messages.append({"role": "user", "content": message})

    try:
        completion = get_chat_client().chat.completions.create(
            model=settings.CHATBOT["MODEL"],
            messages=messages,
        )
    except OpenAIError:
        logger.exception("Chatbot request failed")
        raise InternalError("Failed to get a chatbot response.")
    return completion.choices[0].message.content or ""
