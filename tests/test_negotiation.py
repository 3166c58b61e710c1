from __future__ import annotations

from event_transport.shared.negotiation import candidate_modes, resolve_transport


def test_candidates_start_with_the_mode_and_drop_duplicates() -> None:
    assert candidate_modes("sse", ["short", "sse", "long", "short"]) == ["sse", "short", "long"]


def test_candidates_skip_blank_entries() -> None:
    assert candidate_modes(None, ["", "short"]) == ["short"]


def test_candidates_without_auto_fallback() -> None:
    assert candidate_modes("ws", ["short", "long"], auto_fallback=False) == ["ws"]


def test_resolve_returns_first_buildable() -> None:
    tried: list[str] = []

    def build(mode: str):
        tried.append(mode)
        return f"engine:{mode}" if mode == "long" else None

    result = resolve_transport("ws", ["short", "long", "nostream"], build, lambda: "final")

    assert result == "engine:long"
    assert tried == ["ws", "short", "long"]


def test_resolve_uses_final_when_nothing_builds() -> None:
    result = resolve_transport("ws", ["sse"], lambda mode: None, lambda: "final", side="client")
    assert result == "final"
