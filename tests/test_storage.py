import io
import threading

import pytest

from ssg.protocols import Storage
from ssg.storage import EmptyNameError, FileStorage


def test_store_creates_intermediate_directories(tmp_path):
    storage = FileStorage(tmp_path)
    storage.store("blog/2021/post.html", io.BytesIO(b"<p>hi</p>"))
    assert (tmp_path / "blog" / "2021" / "post.html").read_bytes() == b"<p>hi</p>"


def test_store_overwrites(tmp_path):
    storage = FileStorage(tmp_path)
    storage.store("index.html", io.BytesIO(b"old"))
    storage.store("index.html", io.BytesIO(b"new"))
    assert (tmp_path / "index.html").read_bytes() == b"new"


@pytest.mark.parametrize("name", ["", "   "])
def test_empty_name_is_rejected(tmp_path, name):
    with pytest.raises(EmptyNameError):
        FileStorage(tmp_path).store(name, io.BytesIO(b"x"))


@pytest.mark.parametrize(
    "name, expected",
    [
        ("../../outside.html", "outside.html"),
        ("/etc/passwd", "etc/passwd"),
        ("a/../../b/c.txt", "b/c.txt"),
        ("./static/base.css", "static/base.css"),
    ],
)
def test_names_stay_inside_base_dir(tmp_path, name, expected):
    base = tmp_path / "out"
    storage = FileStorage(base)
    assert storage.destination(name) == base / expected
    storage.store(name, io.BytesIO(b"x"))
    assert (base / expected).read_bytes() == b"x"


def test_concurrent_writes_to_distinct_names(tmp_path):
    storage = FileStorage(tmp_path)

    def write(i):
        storage.store(f"dir{i % 3}/file{i}.txt", io.BytesIO(str(i).encode()))

    threads = [threading.Thread(target=write, args=(i,)) for i in range(30)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(list(tmp_path.rglob("*.txt"))) == 30


def test_file_storage_satisfies_protocol(tmp_path):
    assert isinstance(FileStorage(tmp_path), Storage)
