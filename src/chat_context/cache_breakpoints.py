from __future__ import annotations

CACHE_CONTROL = {"type": "ephemeral"}


def _strip_marker(message: dict) -> dict:
    options = message.get("provider_options")
    if not options or "cache_control" not in (options.get("anthropic") or {}):
        return message
    anthropic_options = {k: v for k, v in options["anthropic"].items() if k != "cache_control"}
    return {**message, "provider_options": {**options, "anthropic": anthropic_options}}


def with_cache_marker(message: dict) -> dict:
    options = dict(message.get("provider_options") or {})
    anthropic_options = dict(options.get("anthropic") or {})
    anthropic_options["cache_control"] = dict(CACHE_CONTROL)
    options["anthropic"] = anthropic_options
    return {**message, "provider_options": options}


def has_cache_marker(message: dict) -> bool:
    options = message.get("provider_options") or {}
    return "cache_control" in (options.get("anthropic") or {})


def count_cache_markers(prompt: list[dict]) -> int:
    return sum(1 for m in prompt if has_cache_marker(m))


def plan_cache_breakpoints(prompt: list[dict]) -> list[dict]:
    """Mark up to two prompt messages as reusable cache prefixes.

    Runs before every underlying model call, including each step of a
    tool-use loop, and returns a new list. Breakpoints:

    1. The first system message: a static prefix shared by every call.
    2. The second-to-last message (any role), unless it is the system
       message. As tool calls and results are appended, this breakpoint
       moves forward and each step only pays for what was appended.

    A 3-step tool-use exchange::

        step 1: [sys*, user]                    -> sys
        step 2: [sys*, user*, asst:tool]        -> sys + user
        step 3: [sys*, user, asst:tool*, result] -> sys + asst:tool
    """
    if not prompt:
        return prompt

    result = [_strip_marker(m) for m in prompt]

    sys_idx = next((i for i, m in enumerate(result) if m.get("role") == "system"), -1)
    if sys_idx != -1:
        result[sys_idx] = with_cache_marker(result[sys_idx])

    if len(result) >= 3:
        target_idx = len(result) - 2
        if target_idx != sys_idx:
            result[target_idx] = with_cache_marker(result[target_idx])

    return result
