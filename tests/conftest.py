import pytest

from wifishare import server
from wifishare.config import conf


@pytest.fixture
def shared_dirs(tmp_path, monkeypatch):
    """imported / exportable 폴더를 임시 디렉토리로 교체"""
    imported = tmp_path / "imported"
    exportable = tmp_path / "exportable"
    imported.mkdir()
    exportable.mkdir()
    monkeypatch.setattr(conf, "config", dict(conf.config))
    conf.set("imported_dir", str(imported))
    conf.set("exportable_dir", str(exportable))
    conf.set("port", 3000)
    return imported, exportable


@pytest.fixture
def client(shared_dirs, monkeypatch):
    monkeypatch.setattr(server, "server_urls", lambda port: [f"http://192.168.1.20:{port}"])
    server.app.config["TESTING"] = True
    with server.app.test_client() as c:
        yield c


@pytest.fixture
def exportable_tree(shared_dirs):
    """
    exportable/
        readme.txt        (5 bytes)
        photos/a.jpg      (10 bytes)
        photos/2024/b.jpg (20 bytes)
    """
    _, exportable = shared_dirs
    (exportable / "readme.txt").write_bytes(b"hello")
    (exportable / "photos" / "2024").mkdir(parents=True)
    (exportable / "photos" / "a.jpg").write_bytes(b"x" * 10)
    (exportable / "photos" / "2024" / "b.jpg").write_bytes(b"y" * 20)
    return exportable
