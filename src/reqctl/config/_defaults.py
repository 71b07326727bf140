"""Default configuration values.

DEFAULT_CONFIG is a plain dict so it can be passed straight to deep_merge,
which always returns a copy.
"""

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {  # pyright: ignore[reportExplicitAny]
    "logging": {
        "level": "info",
        "format": "json",
        "file": "",
    },
    "numbering": {
        "requirement_prefix": "REQ",
        "change_request_prefix": "RFC",
        "digits": 4,
    },
    "concurrency": {
        "max_retries": 3,
    },
    "storage": {
        "path": ".reqctl/projects",
    },
}
