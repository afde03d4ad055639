from __future__ import annotations

import html
import os
from pathlib import Path
from urllib.parse import quote


_PAGE = """<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>Directory listing</title>
</head>
<body>
  <h1>Directory listing</h1>
  <form id="selection">
  <ul>
{items}
  </ul>
  <button type="button" onclick="registerSelection()">Download selected</button>
  </form>
  <script>
    async function registerSelection() {{
      const form = document.getElementById("selection");
      const files = [...form.querySelectorAll("input[name=file]:checked")].map(e => e.value);
      const dirs = [...form.querySelectorAll("input[name=dir]:checked")].map(e => e.value);
      const res = await fetch("/register-selection", {{
        method: "POST",
        headers: {{ "Content-Type": "application/json" }},
        body: JSON.stringify({{ files, dirs }}),
      }});
      if (!res.ok) {{ alert("Could not register selection"); return; }}
      const data = await res.json();
      window.location = "/config/" + encodeURIComponent(data.id);
    }}
  </script>
</body>
</html>
"""


def _href(relative: str) -> str:
    return "/files/" + quote(relative, safe="/")


def _item(kind: str, icon: str, relative: str, name: str) -> str:
    value = html.escape(relative, quote=True)
    return (
        f'    <li><input type="checkbox" name="{kind}" value="{value}" /> '
        f'{icon} <a href="{html.escape(_href(relative), quote=True)}">{html.escape(name)}</a></li>'
    )


def render_directory(directory: Path, base: str) -> str:
    """HTML listing of one directory; `base` is its sanitized path under root.

    Raises OSError when the directory cannot be read.
    """
    dirs: list[str] = []
    files: list[str] = []
    with os.scandir(directory) as it:
        for entry in it:
            try:
                is_dir = entry.is_dir()
            except OSError:
                is_dir = False
            (dirs if is_dir else files).append(entry.name)

    items: list[str] = []
    if base:
        parent = base.rpartition("/")[0]
        items.append(f'    <li><a href="{html.escape(_href(parent), quote=True)}">[..]</a></li>')

    for name in sorted(dirs):
        relative = f"{base}/{name}" if base else name
        items.append(_item("dir", "&#128193;", relative, name))
    for name in sorted(files):
        relative = f"{base}/{name}" if base else name
        items.append(_item("file", "&#128196;", relative, name))

    return _PAGE.format(items="\n".join(items))
