"""
MODULE OVERVIEW:
The transport negotiation algorithm, shared by the server stream factory and the client resolver.

WHAT IS HAPPENING HERE:
Both sides walk the same candidate list: the configured mode first, then the fallback order,
duplicates dropped. Each side supplies its own `build` callable that returns None when a mode
is unavailable in its environment. If nothing builds, the single-shot transport is used no
matter what the fallback order says. Because the walk is identical, a configuration always
lands client and server on compatible mechanisms.
"""
from typing import Callable, Iterable, TypeVar

from loguru import logger

T = TypeVar("T")


def candidate_modes(
    mode: str | None,
    fallback_order: Iterable[str] = (),
    auto_fallback: bool = True,
) -> list[str]:
    candidates = [mode] + (list(fallback_order) if auto_fallback else [])
    seen: set[str] = set()
    ordered: list[str] = []
    for candidate in candidates:
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        ordered.append(candidate)
    return ordered


def resolve_transport(
    mode: str | None,
    fallback_order: Iterable[str],
    build: Callable[[str], T | None],
    final: Callable[[], T],
    auto_fallback: bool = True,
    side: str = "server",
) -> T:
    """Return the first transport that `build` can construct, else `final()`."""
    for candidate in candidate_modes(mode, fallback_order, auto_fallback):
        transport = build(candidate)
        if transport is not None:
            logger.info(f"side={side} event=resolved mode={candidate} requested={mode}")
            return transport
        logger.debug(f"side={side} event=fallthrough mode={candidate}")

    logger.info(f"side={side} event=resolved mode=nostream requested={mode} reason=final_fallback")
    return final()
