from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml


def read_json_file(path: str | Path) -> Any:
    """Read and parse a UTF-8 JSON file.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        json.JSONDecodeError: If the content is not valid JSON.
    """
    with Path(path).open("r", encoding="utf-8") as f:
        return json.load(f)


def write_text_file(path: str | Path, text: str) -> None:
    """
    Write text content to a file with consistent UTF-8 encoding and LF newlines.

    Guarantees:
    - Converts ``path`` to ``Path``.
    - Ensures parent directories exist.
    - Writes with encoding="utf-8" and newline="\\n".
    - Overwrites existing file content.
    - No logging side effects.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    # Normalize to string and ensure LF newlines.
    data = str(text).replace("\r\n", "\n").replace("\r", "\n")

    with target.open("w", encoding="utf-8", newline="\n") as f:
        f.write(data)


def write_yaml_file(path: str | Path, data: Any) -> None:
    """
    Write YAML content to a file with consistent UTF-8 encoding and LF newlines.

    Guarantees:
    - Converts ``path`` to ``Path``.
    - Ensures parent directories exist.
    - Uses yaml.safe_dump with default_flow_style=False, sort_keys=False and
      allow_unicode=True, so only plain data (dicts, lists, scalars) is accepted.
    - Overwrites existing file content.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    yaml_text = yaml.safe_dump(
        data,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )
    yaml_text = yaml_text.replace("\r\n", "\n").replace("\r", "\n")

    with target.open("w", encoding="utf-8", newline="\n") as f:
        f.write(yaml_text)


def write_bytes_file(path: str | Path, content: bytes) -> None:
    """Write binary content, creating parent directories."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)
