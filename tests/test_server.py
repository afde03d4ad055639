import logging
import os
from pathlib import Path
from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

from fileserver_backend.batch_config import unescape_config_value
from fileserver_backend.config import ServerContext
from server import build_parser, create_app


def _pairs(config_text: str) -> list[tuple[str, str]]:
    urls, outputs = [], []
    for line in config_text.splitlines():
        if line.startswith("url = "):
            urls.append(unescape_config_value(line[len('url = "'):-1]))
        elif line.startswith("output = "):
            outputs.append(unescape_config_value(line[len('output = "'):-1]))
    assert len(urls) == len(outputs)
    return list(zip(urls, outputs))


def test_full_file_download(client: TestClient, served_root: Path, caplog):
    caplog.set_level(logging.INFO, logger="fileserver_backend.streaming")
    res = client.get("/files/big.bin")
    data = (served_root / "big.bin").read_bytes()
    assert res.status_code == 200
    assert res.content == data
    assert res.headers["content-length"] == str(len(data))
    assert res.headers["accept-ranges"] == "bytes"
    assert res.headers["content-disposition"] == 'attachment; filename="big.bin"'
    assert "content-range" not in res.headers
    assert "File download (full)" in caplog.text
    assert "client=testclient" in caplog.text
    assert f"file={served_root / 'big.bin'}" in caplog.text
    assert "size=2048" in caplog.text


def test_partial_download(client: TestClient, served_root: Path, caplog):
    caplog.set_level(logging.INFO, logger="fileserver_backend.streaming")
    data = (served_root / "big.bin").read_bytes()
    res = client.get("/files/big.bin", headers={"Range": "bytes=0-99"})
    assert res.status_code == 206
    assert res.headers["content-range"] == f"bytes 0-99/{len(data)}"
    assert res.headers["content-length"] == "100"
    assert res.content == data[:100]
    assert "File download (partial)" in caplog.text
    assert "client=testclient" in caplog.text
    assert "range=0-99" in caplog.text


def test_partial_download_from_middle(client: TestClient, served_root: Path):
    data = (served_root / "big.bin").read_bytes()
    res = client.get("/files/big.bin", headers={"Range": "bytes=1000-"})
    assert res.status_code == 206
    assert res.content == data[1000:]


def test_out_of_bounds_range_serves_full_file(client: TestClient, served_root: Path):
    data = (served_root / "big.bin").read_bytes()
    for header in (f"bytes=0-{len(data)}", "bytes=50-10", "garbage"):
        res = client.get("/files/big.bin", headers={"Range": header})
        assert res.status_code == 200
        assert res.headers["content-length"] == str(len(data))
        assert res.content == data


def test_content_type_is_guessed(client: TestClient):
    res = client.get("/files/hello.txt")
    assert res.headers["content-type"].startswith("text/plain")


def test_traversal_never_leaves_root(tmp_path: Path, served_root: Path, client: TestClient):
    (tmp_path / "secret").write_text("top secret", encoding="utf-8")
    res = client.get("/files/../../secret")
    assert res.status_code == 404
    res = client.get("/files/%2e%2e/%2e%2e/secret")
    assert res.status_code == 404
    res = client.get("/files/..%2F..%2Fhello.txt")
    assert res.status_code == 200
    assert res.content == b"hello world\n"


def test_missing_file_is_404(client: TestClient):
    assert client.get("/files/nope.txt").status_code == 404


def test_directory_listing(client: TestClient):
    res = client.get("/files/docs")
    assert res.status_code == 200
    assert "text/html" in res.headers["content-type"]
    assert 'href="/files/docs/a.md"' in res.text
    assert 'href="/files/docs/nested"' in res.text
    assert "[..]" in res.text


def test_root_listing(client: TestClient):
    for url in ("/", "/files/"):
        res = client.get(url)
        assert res.status_code == 200
        assert 'href="/files/hello.txt"' in res.text
        assert "[..]" not in res.text


def test_root_may_be_a_single_file(served_root: Path):
    ctx = ServerContext(root=served_root / "hello.txt", port=3000, public_host="h")
    client = TestClient(create_app(ctx))
    res = client.get("/")
    assert res.status_code == 200
    assert res.content == b"hello world\n"
    assert client.get("/files/anything").status_code == 404


def test_selection_round_trip(client: TestClient):
    res = client.post("/register-selection", json={"files": ["hello.txt"], "dirs": ["docs"]})
    assert res.status_code == 200
    sid = res.json()["id"]

    config = client.get(f"/config/{sid}")
    assert config.status_code == 200
    assert config.headers["content-type"].startswith("text/plain")
    assert "parallel-max = 3" in config.text

    pairs = _pairs(config.text)
    assert len(pairs) == 4
    assert len(set(pairs)) == 4
    assert ("http://10.0.0.5:3000/files/docs/nested/c.md", "docs/nested/c.md") in pairs


def test_reregistering_gives_new_id_same_files(client: TestClient):
    body = {"files": ["hello.txt"], "dirs": ["docs"]}
    first = client.post("/register-selection", json=body).json()["id"]
    second = client.post("/register-selection", json=body).json()["id"]
    assert first != second
    assert _pairs(client.get(f"/config/{first}").text) == _pairs(client.get(f"/config/{second}").text)


def test_selection_defaults_to_empty_lists(client: TestClient):
    sid = client.post("/register-selection", json={}).json()["id"]
    assert _pairs(client.get(f"/config/{sid}").text) == []


def test_invalid_selection_body_is_rejected(client: TestClient):
    res = client.post("/register-selection", json={"files": "hello.txt"})
    assert res.status_code == 422


def test_unknown_config_is_404(client: TestClient):
    assert client.get("/config/does-not-exist").status_code == 404


def test_oldest_selection_is_evicted(client: TestClient):
    ids = [
        client.post("/register-selection", json={"files": [f"f{i}.txt"]}).json()["id"]
        for i in range(101)
    ]
    assert client.get(f"/config/{ids[0]}").status_code == 404
    for sid in ids[1:]:
        assert client.get(f"/config/{sid}").status_code == 200


@pytest.mark.skipif(os.name == "nt", reason="quotes are not allowed in Windows file names")
def test_special_names_survive_config_escaping(client: TestClient, served_root: Path):
    name = 'say "hi", bye.txt'
    (served_root / name).write_text("x", encoding="utf-8")
    sid = client.post("/register-selection", json={"files": [name]}).json()["id"]
    text = client.get(f"/config/{sid}").text
    assert '\\"hi\\"\\,' in text
    assert _pairs(text) == [('http://10.0.0.5:3000/files/say%20"hi",%20bye.txt', name)]
    assert client.get(_pairs(text)[0][0]).content == b"x"


@pytest.mark.skipif(os.name == "nt", reason="'?' is not allowed in Windows file names")
def test_config_urls_fetch_files_with_url_syntax_in_names(client: TestClient, served_root: Path):
    names = ["track#1.mp3", "what?.txt", "100%41.txt"]
    for name in names:
        (served_root / name).write_bytes(name.encode("utf-8"))
    sid = client.post("/register-selection", json={"files": names}).json()["id"]
    pairs = _pairs(client.get(f"/config/{sid}").text)
    assert sorted(output for _, output in pairs) == sorted(names)
    for url, output in pairs:
        assert url == "http://10.0.0.5:3000/files/" + quote(output, safe="/\",")
        res = client.get(url)
        assert res.status_code == 200
        assert res.content == output.encode("utf-8")


@pytest.mark.skipif(os.name == "nt", reason="backslash is a separator on Windows")
def test_backslash_in_name_is_served_on_posix(client: TestClient, served_root: Path):
    (served_root / "a\\b.txt").write_bytes(b"slashed")
    res = client.get("/files/a%5Cb.txt")
    assert res.status_code == 200
    assert res.content == b"slashed"
    assert 'href="/files/a%5Cb.txt"' in client.get("/").text

    sid = client.post("/register-selection", json={"dirs": [""]}).json()["id"]
    outputs = [output for _, output in _pairs(client.get(f"/config/{sid}").text)]
    assert "a\\b.txt" in outputs


def test_healthz(client: TestClient):
    assert client.get("/healthz").json() == {"ok": True}


def test_parser_defaults():
    args = build_parser().parse_args(["-f", "/srv", "-p", "8080", "-j", "8"])
    assert args.folder_path == "/srv"
    assert args.port_number == 8080
    assert args.parallel == 8


def test_importing_server_has_no_side_effects(monkeypatch):
    import importlib

    import fileserver_backend.config as config
    import server

    def fail(*args, **kwargs):
        raise AssertionError("called at import time")

    monkeypatch.setattr(config, "detect_local_ip", fail)
    monkeypatch.setattr(config, "resolve_root", fail)
    reloaded = importlib.reload(server)
    assert not hasattr(reloaded, "app")
