"""prootfix: make Chromium, Firefox and VSCode usable in a proot Ubuntu desktop.

Core design goals:
- Idempotent steps (re-running is a no-op)
- Wrappers instead of edited callers
- Best-effort: a failing step never aborts the run
- Centralized logging
"""

__all__ = []
