"""
MODULE OVERVIEW:
A stand-in for the upstream service that produces events (e.g. a model-inference backend).

WHAT IS HAPPENING HERE:
In a real deployment this is where tokens from the model arrive. Here we fake a reply to the
prompt and feed it word by word into whatever engine the factory picked. The producer never
knows which transport it is talking to: it only calls the stream contract.
"""
import asyncio
from typing import Any

from loguru import logger

from event_transport.server.streams.base import EventStream

KEEP_ALIVE_EVERY = 10


def compose_reply(prompt: str) -> str:
    prompt = prompt.strip()
    if not prompt:
        return "Hello! Send a prompt and I will stream an answer back token by token."
    return f"You asked: {prompt}. Here is a streamed answer, one token at a time."


def tokenize(text: str) -> list[str]:
    words = text.split(" ")
    return [word if i == len(words) - 1 else word + " " for i, word in enumerate(words)]


async def stream_reply(stream: EventStream, payload: dict[str, Any], delay_s: float = 0.05) -> None:
    """Push a meta event, then one token per word, then finish with the full text."""
    reply = compose_reply(str(payload.get("prompt", "")))
    tokens = tokenize(reply)
    sent = 0

    try:
        await stream.start()
        await stream.push("meta", {"tokens": len(tokens)})

        for token in tokens:
            if await stream.is_disconnected():
                logger.info(f"protocol={stream.mode.value} event=producer_stop reason=client_gone sent={sent}")
                break
            await stream.push("token", {"t": token})
            sent += 1
            if sent % KEEP_ALIVE_EVERY == 0:
                await stream.send_comment("keep-alive")
            if delay_s > 0:
                await asyncio.sleep(delay_s)

        await stream.finish({"text": "".join(tokens[:sent]), "n": sent})
    except Exception as e:
        logger.error(f"protocol={stream.mode.value} event=producer_error reason='{e}'")
        await stream.finish({"error": str(e), "n": sent})
