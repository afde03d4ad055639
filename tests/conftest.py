from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from fileserver_backend.config import ServerContext
from server import create_app


@pytest.fixture
def served_root(tmp_path: Path) -> Path:
    root = tmp_path / "root"
    root.mkdir()
    (root / "hello.txt").write_bytes(b"hello world\n")
    (root / "big.bin").write_bytes(bytes(range(256)) * 8)
    docs = root / "docs"
    docs.mkdir()
    (docs / "a.md").write_text("# a\n", encoding="utf-8")
    (docs / "b.md").write_text("# b\n", encoding="utf-8")
    nested = docs / "nested"
    nested.mkdir()
    (nested / "c.md").write_text("# c\n", encoding="utf-8")
    return root.resolve()


@pytest.fixture
def context(served_root: Path) -> ServerContext:
    return ServerContext(root=served_root, port=3000, parallel_max=3, public_host="10.0.0.5")


@pytest.fixture
def client(context: ServerContext) -> TestClient:
    return TestClient(create_app(context))
