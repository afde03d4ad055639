from __future__ import annotations

from typing import Iterable
from urllib.parse import quote


# Characters that must be written as a two-character escape in config values.
_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    ",": "\\,",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}

# Left unquoted in urls; quote and comma are handled by the config escaping.
_URL_SAFE = '/",'

_UNESCAPES = {
    "\\": "\\",
    '"': '"',
    ",": ",",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}


def escape_config_value(value: str) -> str:
    return "".join(_ESCAPES.get(ch, ch) for ch in value)


def unescape_config_value(value: str) -> str:
    """Inverse of escape_config_value. Unknown escapes keep the escaped char."""
    out: list[str] = []
    chars = iter(value)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, None)
        if nxt is None:
            out.append("\\")
            break
        out.append(_UNESCAPES.get(nxt, nxt))
    return "".join(out)


def file_url(base_url: str, relative: str) -> str:
    path = quote(relative, safe=_URL_SAFE)
    return f"{base_url.rstrip('/')}/files/{path}"


def render_batch_config(files: Iterable[str], base_url: str, parallel_max: int) -> str:
    """Render a selection as a curl config (`curl --parallel -K selection.txt`).

    The header resumes partial outputs and downloads in parallel; each file
    then gets a url/output pair pointing back at this server.
    """
    lines = [
        "continue-at = -",
        "parallel",
        f"parallel-max = {max(1, int(parallel_max))}",
        "create-dirs",
    ]
    for relative in files:
        lines.append("")
        lines.append(f'url = "{escape_config_value(file_url(base_url, relative))}"')
        lines.append(f'output = "{escape_config_value(relative)}"')
    return "\n".join(lines) + "\n"
