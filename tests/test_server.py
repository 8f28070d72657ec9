import io
import json
import logging
import os
import re
import zipfile

from wifishare import server


# --- GET / ---

def test_index_empty_state(client):
    resp = client.get("/")
    assert resp.status_code == 200
    html = resp.get_data(as_text=True)
    assert "No files in ./data/exportable directory" in html
    assert "No files in ./data/imported directory" in html
    assert "http://192.168.1.20:3000" in html
    assert "data:image/png;base64," in html


def test_index_renders_tree_and_lists(client, exportable_tree, shared_dirs):
    imported, _ = shared_dirs
    (imported / "from-phone").mkdir()
    (imported / "from-phone" / "IMG_1.heic").write_bytes(b"z" * 2048)

    html = client.get("/").get_data(as_text=True)
    assert "📁 photos" in html
    assert "📁 2024" in html
    assert 'data-path="photos/2024"' in html
    # 전체 / 폴더별 크기 합계
    assert "Download All (35 B)" in html
    assert "Download All (30 B)" in html
    assert "from-phone/IMG_1.heic" in html
    assert "2 KB" in html


def test_index_escapes_file_names(client, shared_dirs):
    _, exportable = shared_dirs
    (exportable / "<b>x'.txt").write_text("1")
    html = client.get("/").get_data(as_text=True)
    assert "<b>x'.txt" not in html
    assert "&lt;b&gt;x&#39;.txt" in html


def test_index_folder_ids_unique_for_non_ascii_names(client, shared_dirs):
    _, exportable = shared_dirs
    for name in ("사진", "문서"):
        (exportable / name).mkdir()
        (exportable / name / "a.txt").write_text("1")

    html = client.get("/").get_data(as_text=True)
    ids = re.findall(r'class="folder-content" id="(folder-[^"]+)"', html)
    assert len(ids) == 2
    assert len(set(ids)) == 2


# --- POST /upload ---

def test_upload_files_and_folder(client, shared_dirs):
    imported, _ = shared_dirs
    sub = server.broadcaster.subscribe()
    try:
        resp = client.post("/upload", data={
            "files": [(io.BytesIO(b"abc"), "a.txt"), (io.BytesIO(b"xy"), "b.txt")],
            "paths": ["docs/notes/a.txt", "b.txt"],
        }, content_type="multipart/form-data")

        assert resp.status_code == 200
        assert resp.get_json() == {"success": True, "count": 2}
        assert (imported / "docs" / "notes" / "a.txt").read_bytes() == b"abc"
        assert (imported / "b.txt").read_bytes() == b"xy"

        message = json.loads(sub.get_nowait())
        assert message["type"] == "files-uploaded"
        assert message["data"] == {"count": 2}
    finally:
        server.broadcaster.unsubscribe(sub)


def test_upload_without_paths_uses_filename(client, shared_dirs):
    imported, _ = shared_dirs
    resp = client.post("/upload", data={"files": (io.BytesIO(b"1234"), "photo.jpg")},
                       content_type="multipart/form-data")
    assert resp.status_code == 200
    assert (imported / "photo.jpg").read_bytes() == b"1234"


def test_upload_strips_traversal(client, shared_dirs, tmp_path):
    imported, _ = shared_dirs
    resp = client.post("/upload", data={
        "files": (io.BytesIO(b"evil"), "evil.txt"),
        "paths": "../../evil.txt",
    }, content_type="multipart/form-data")
    assert resp.status_code == 200
    assert (imported / "evil.txt").exists()
    assert not (tmp_path / "evil.txt").exists()


def test_upload_nothing(client):
    resp = client.post("/upload", data={}, content_type="multipart/form-data")
    assert resp.status_code == 400
    assert resp.get_json() == {"success": False, "error": "No files uploaded"}


def test_upload_skips_dot_only_names(client, shared_dirs):
    imported, _ = shared_dirs
    sub = server.broadcaster.subscribe()
    try:
        resp = client.post("/upload", data={
            "files": [(io.BytesIO(b"ok"), "ok.txt"), (io.BytesIO(b"dots"), "...")],
        }, content_type="multipart/form-data")

        assert resp.status_code == 200
        assert resp.get_json() == {"success": True, "count": 1}
        assert (imported / "ok.txt").read_bytes() == b"ok"
        assert sorted(p.name for p in imported.iterdir()) == ["ok.txt"]
        assert json.loads(sub.get_nowait())["data"] == {"count": 1}
    finally:
        server.broadcaster.unsubscribe(sub)


def test_upload_continues_after_failed_file(client, shared_dirs):
    imported, _ = shared_dirs
    # 같은 이름의 일반 파일이 있어 하위 폴더를 만들 수 없음
    (imported / "blocked").write_text("file")
    resp = client.post("/upload", data={
        "files": [(io.BytesIO(b"x"), "x.txt"), (io.BytesIO(b"y"), "y.txt")],
        "paths": ["blocked/x.txt", "y.txt"],
    }, content_type="multipart/form-data")

    assert resp.status_code == 200
    assert resp.get_json() == {"success": True, "count": 1}
    assert (imported / "y.txt").read_bytes() == b"y"

    resp = client.post("/upload", data={
        "files": (io.BytesIO(b"x"), "x.txt"),
        "paths": "blocked/x.txt",
    }, content_type="multipart/form-data")
    assert resp.status_code == 500
    assert resp.get_json() == {"success": False, "error": "Upload failed"}


def test_upload_too_large(client, monkeypatch):
    monkeypatch.setitem(server.app.config, "MAX_CONTENT_LENGTH", 10)
    resp = client.post("/upload", data={"files": (io.BytesIO(b"z" * 1000), "big.bin")},
                       content_type="multipart/form-data")
    assert resp.status_code == 413
    body = resp.get_json()
    assert body["success"] is False
    assert "10 B" in body["error"]


# --- GET /download/<directory>/<path> ---

def test_download_file(client, exportable_tree):
    resp = client.get("/download/exportable/photos/2024/b.jpg")
    assert resp.status_code == 200
    assert resp.data == b"y" * 20
    assert resp.headers["Content-Disposition"].startswith("attachment")
    assert "b.jpg" in resp.headers["Content-Disposition"]
    assert resp.headers["Content-Type"] == "image/jpeg"
    assert resp.headers["Content-Length"] == "20"


def test_download_imported_unknown_type(client, shared_dirs):
    imported, _ = shared_dirs
    (imported / "blob.weirdext").write_bytes(b"\x00\x01")
    resp = client.get("/download/imported/blob.weirdext")
    assert resp.status_code == 200
    assert resp.headers["Content-Type"] == "application/octet-stream"


def test_download_encoded_name(client, shared_dirs):
    _, exportable = shared_dirs
    (exportable / "my file #1.txt").write_text("hi")
    resp = client.get("/download/exportable/my%20file%20%231.txt")
    assert resp.status_code == 200
    assert resp.data == b"hi"


def test_download_rejects_traversal(client, shared_dirs, tmp_path):
    (tmp_path / "secret.txt").write_text("nope")
    resp = client.get("/download/exportable/..%2Fsecret.txt")
    assert resp.status_code == 403


def test_download_missing_and_directory(client, exportable_tree):
    assert client.get("/download/exportable/nope.txt").status_code == 404
    assert client.get("/download/exportable/photos").status_code == 404


def test_download_unknown_directory(client, exportable_tree):
    assert client.get("/download/elsewhere/readme.txt").status_code == 404


def test_download_through_linked_folder(client, shared_dirs, tmp_path):
    _, exportable = shared_dirs
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "song.mp3").write_bytes(b"la")
    os.symlink(str(outside), str(exportable / "music"), target_is_directory=True)

    resp = client.get("/download/exportable/music/song.mp3")
    assert resp.status_code == 200
    assert resp.data == b"la"


# --- GET /download-folder/<path> ---

def test_download_folder_zip(client, exportable_tree):
    resp = client.get("/download-folder/photos")
    assert resp.status_code == 200
    assert resp.headers["Content-Type"] == "application/zip"
    assert 'photos.zip' in resp.headers["Content-Disposition"]

    with zipfile.ZipFile(io.BytesIO(resp.data)) as zf:
        assert sorted(zf.namelist()) == ["2024/b.jpg", "a.jpg"]
        assert zf.read("2024/b.jpg") == b"y" * 20
        assert zf.getinfo("a.jpg").compress_type == zipfile.ZIP_DEFLATED


def test_download_whole_exportable(client, exportable_tree):
    for url in ("/download-folder/.", "/download-folder/"):
        resp = client.get(url)
        assert resp.status_code == 200
        assert "exportable.zip" in resp.headers["Content-Disposition"]
        with zipfile.ZipFile(io.BytesIO(resp.data)) as zf:
            assert sorted(zf.namelist()) == ["photos/2024/b.jpg", "photos/a.jpg", "readme.txt"]


def test_download_folder_encoded_slash(client, exportable_tree):
    resp = client.get("/download-folder/photos%2F2024")
    assert resp.status_code == 200
    assert "2024.zip" in resp.headers["Content-Disposition"]


def test_download_folder_errors(client, exportable_tree):
    assert client.get("/download-folder/missing").status_code == 404
    assert client.get("/download-folder/readme.txt").status_code == 404
    assert client.get("/download-folder/..%2F..").status_code == 403


# --- POST /link-folder ---

def test_link_folder(client, shared_dirs, tmp_path):
    _, exportable = shared_dirs
    target = tmp_path / "Vacation"
    target.mkdir()
    (target / "beach.png").write_bytes(b"png")

    sub = server.broadcaster.subscribe()
    try:
        resp = client.post("/link-folder", json={"folderPath": str(target)})
        assert resp.status_code == 200
        assert resp.get_json() == {"success": True, "message": "Successfully linked folder: Vacation"}

        link = exportable / "Vacation"
        assert link.is_symlink()
        assert os.readlink(str(link)) == str(target)
        assert (link / "beach.png").read_bytes() == b"png"

        message = json.loads(sub.get_nowait())
        assert message["type"] == "folder-linked"
        assert message["data"] == {"folderName": "Vacation"}
    finally:
        server.broadcaster.unsubscribe(sub)


def test_link_folder_trailing_slash(client, shared_dirs, tmp_path):
    _, exportable = shared_dirs
    (tmp_path / "Docs").mkdir()
    resp = client.post("/link-folder", json={"folderPath": str(tmp_path / "Docs") + "/"})
    assert resp.status_code == 200
    assert (exportable / "Docs").is_symlink()


def test_link_folder_validation(client, shared_dirs, tmp_path):
    _, exportable = shared_dirs
    (tmp_path / "file.txt").write_text("x")
    (tmp_path / "taken").mkdir()
    (exportable / "taken").mkdir()

    resp = client.post("/link-folder", json={})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Folder path is required"

    assert client.post("/link-folder", data="not json").status_code == 400
    assert client.post("/link-folder", json={"folderPath": str(tmp_path / "missing")}).status_code == 404

    resp = client.post("/link-folder", json={"folderPath": str(tmp_path / "file.txt")})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Path is not a directory"

    resp = client.post("/link-folder", json={"folderPath": str(tmp_path / "taken")})
    assert resp.status_code == 409


# --- speed test ---

def test_speedtest_ping(client):
    resp = client.get("/speedtest/ping")
    assert resp.get_json() == {"status": "ok"}


def test_speedtest_download_sizes(client):
    resp = client.get("/speedtest/download?size=2")
    assert resp.status_code == 200
    assert resp.headers["Content-Type"] == "application/octet-stream"
    assert resp.headers["Content-Length"] == str(2 * 1024 * 1024)
    assert len(resp.data) == 2 * 1024 * 1024
    assert resp.data.count(b"\x00") == len(resp.data)

    for bad in ("", "?size=abc", "?size=0", "?size=-4"):
        assert len(client.get("/speedtest/download" + bad).data) == 1024 * 1024


def test_speedtest_download_capped(client, shared_dirs):
    from wifishare.config import conf
    conf.set("speedtest_max_mb", 3)
    resp = client.get("/speedtest/download?size=500")
    assert resp.headers["Content-Length"] == str(3 * 1024 * 1024)


def test_speedtest_upload_counts_bytes(client):
    resp = client.post("/speedtest/upload", data=b"x" * 200000, content_type="application/octet-stream")
    assert resp.get_json() == {"received": 200000}


# --- GET /events ---

def test_events_stream(client):
    before = server.broadcaster.client_count
    resp = client.get("/events")
    assert resp.status_code == 200
    assert resp.mimetype == "text/event-stream"
    assert resp.headers["Cache-Control"] == "no-cache"

    stream = iter(resp.response)
    assert next(stream) == b"retry: 3000\n\n"
    assert server.broadcaster.client_count == before + 1

    server.broadcaster.publish("file-change", {"directory": "imported"})
    frame = next(stream)
    assert frame.startswith(b"data: ")
    payload = json.loads(frame[len(b"data: "):].decode())
    assert payload["type"] == "file-change"
    assert payload["data"] == {"directory": "imported"}

    resp.close()
    assert server.broadcaster.client_count == before


# --- error handlers / request logging ---

def test_unexpected_error_returns_json_500(client, monkeypatch, caplog):
    def broken(files):
        raise RuntimeError("tree exploded")

    monkeypatch.setattr(server, "build_folder_tree", broken)
    caplog.set_level(logging.DEBUG, logger="wifishare")

    resp = client.get("/")
    assert resp.status_code == 500
    assert resp.get_json() == {"success": False, "error": "Internal server error"}
    assert any(r.levelno == logging.ERROR and "tree exploded" in r.getMessage() for r in caplog.records)

    # abort()는 여전히 원래 상태 코드로 응답
    assert client.get("/download/elsewhere/x.txt").status_code == 404


def test_transfers_are_logged(client, exportable_tree, caplog):
    caplog.set_level(logging.DEBUG, logger="wifishare")
    assert client.get("/download/exportable/readme.txt").status_code == 200

    messages = [(r.levelno, r.getMessage()) for r in caplog.records if r.name == "wifishare"]
    assert any(level == logging.INFO and "다운로드: exportable/readme.txt" in msg for level, msg in messages)
    assert any(level == logging.DEBUG and "GET /download/exportable/readme.txt 200" in msg
               for level, msg in messages)
