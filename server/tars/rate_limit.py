# ─────────────────────────────────────────────────────────────────────────────
# Per-IP Limiter — slowapi for public routes
# ─────────────────────────────────────────────────────────────────────────────
# Public paths skip the gate and its per-client windows, so the welcome page
# gets a coarse per-IP cap instead. One Limiter per app: its in-memory
# counters and the configured limit belong to that app's Settings.
# ─────────────────────────────────────────────────────────────────────────────


from slowapi import Limiter
from slowapi.util import get_remote_address


def build_limiter() -> Limiter:
    """Fresh limiter with its own in-memory storage, keyed by client IP."""
    return Limiter(key_func=get_remote_address)
