"""Plain-text rendering of assembled Slack context for the completion model.

format_for_model() merges several MessageContexts into one transcript, keeping
each message (keyed by ts) at most once across the whole render.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Set, Tuple

from ..schemas.messages import Message, MessageContext, ts_sort_key

CONTEXT_SEPARATOR = "\n---\n"
TARGET_PREFIX = ">>> "
HISTORY_HEADER = "=== Recent Channel Messages ===\n"


def format_message(msg: Message) -> str:
    return f"[{msg.ts}] {msg.author}: {msg.text}"


def _render_context(context: MessageContext, seen: Set[str]) -> str:
    out: List[str] = [f"#{context.target_message.channel_name}:\n"]

    window: List[Tuple[str, Message, bool]] = []
    for msg in context.before_messages:
        if msg.ts not in seen:
            seen.add(msg.ts)
            window.append((msg.ts, msg, False))

    # A target already printed by an earlier context keeps its first line only.
    target = context.target_message
    if target.ts not in seen:
        seen.add(target.ts)
        window.append((target.ts, target, True))

    for msg in context.after_messages:
        if msg.ts not in seen:
            seen.add(msg.ts)
            window.append((msg.ts, msg, False))

    window.sort(key=lambda item: ts_sort_key(item[0]))
    for _, msg, is_target in window:
        prefix = TARGET_PREFIX if is_target else ""
        out.append(f"{prefix}{format_message(msg)}\n")

    thread_lines: List[str] = []
    for thread in context.threads:
        for reply in thread.replies:
            if reply.ts not in seen:
                seen.add(reply.ts)
                thread_lines.append(f"  {format_message(reply)}\n")
    if thread_lines:
        out.append("\nThreads:\n")
        out.extend(thread_lines)

    return "".join(out)


def format_for_model(contexts: Iterable[MessageContext]) -> str:
    """
    Render contexts in order, separated by a "---" line.
    The target of each context is marked with ">>> ". The dedup set is shared by
    every context, so a message already shown earlier (as a neighbour, a target
    or a thread reply) is not repeated.
    """
    seen: Set[str] = set()
    parts = [_render_context(context, seen) for context in contexts]
    return CONTEXT_SEPARATOR.join(parts)


def format_channel_history(messages: Sequence[Message], limit: Optional[int] = 20) -> str:
    """Render the newest `limit` messages oldest first. Empty history renders as ""."""
    if not messages:
        return ""
    ordered = sorted(messages, key=lambda m: ts_sort_key(m.ts))
    if limit is not None:
        ordered = ordered[-limit:] if limit > 0 else []
    lines = [f"{format_message(msg)}\n" for msg in ordered]
    return HISTORY_HEADER + "".join(lines) + "\n"
