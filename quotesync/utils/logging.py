from __future__ import annotations

import logging
import time

_LAST_SEEN: dict[str, float] = {}
_MAX_CODES = 256


def warn_once(logger: logging.Logger, code: str, message: str, *, window: float = 300.0) -> bool:
    """Emit ``message`` at WARNING level at most once per ``window`` seconds for ``code``.

    Repeated failures of a periodic sync would otherwise flood the log with the
    same line every interval. Suppressed repeats are still logged at DEBUG.
    Returns ``True`` when the warning was emitted.
    """
    now = time.monotonic()
    last = _LAST_SEEN.get(code)
    if last is not None and now - last <= window:
        logger.debug("%s: %s (repeat suppressed)", code, message)
        return False
    if len(_LAST_SEEN) >= _MAX_CODES:
        oldest = min(_LAST_SEEN, key=_LAST_SEEN.__getitem__)
        _LAST_SEEN.pop(oldest, None)
    _LAST_SEEN[code] = now
    logger.warning("%s: %s", code, message)
    return True


def clear_warnings(code: str | None = None) -> None:
    """Forget suppression state, e.g. once the failing call succeeds again."""
    if code is None:
        _LAST_SEEN.clear()
    else:
        _LAST_SEEN.pop(code, None)
