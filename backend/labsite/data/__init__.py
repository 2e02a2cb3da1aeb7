"""Static content bundled with the package (tools, fallback rooms)."""

import json
from importlib import resources
from typing import Any


def load_json(filename: str) -> Any:
    """
    Load a JSON document shipped in this package.

    Raises:
        OSError: If the file is missing
        ValueError: If the file is not valid JSON
    """
    content = resources.files(__name__).joinpath(filename).read_text(encoding="utf-8")
    return json.loads(content)
