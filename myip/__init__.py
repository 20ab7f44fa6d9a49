"""myip - what is my IP address, and what does the internet know about it."""

__version__ = "1.0.0"

from .composer import compose, handle_request  # noqa: E402
from .config import Settings, load_settings  # noqa: E402
from .render import classify, render_json, render_text  # noqa: E402
from .resolver import resolve_remote_addr  # noqa: E402

__all__ = [
    "Settings",
    "load_settings",
    "resolve_remote_addr",
    "compose",
    "handle_request",
    "classify",
    "render_json",
    "render_text",
]
