import asyncio
import os

import pytest

from sopsage_core.errors import FileAccessError
from sopsage_core.storage.arbiter import FileAccessArbiter, read_text, replace_text

posix_only = pytest.mark.skipif(os.name == "nt", reason="holds the lock with fcntl")


@pytest.mark.asyncio
async def test_create_makes_parent_directories(tmp_path):
    path = tmp_path / "a" / "b" / "keys.txt"
    await FileAccessArbiter().run(path, lambda h: replace_text(h, "hello\n"), create=True)
    assert path.read_text() == "hello\n"


@pytest.mark.asyncio
async def test_replace_text_truncates(tmp_path):
    path = tmp_path / "keys.txt"
    path.write_text("a much longer previous content\n")
    await FileAccessArbiter().run(path, lambda h: replace_text(h, "short\n"))
    assert path.read_text() == "short\n"


@pytest.mark.asyncio
async def test_missing_file_without_create(tmp_path):
    with pytest.raises(FileNotFoundError):
        await FileAccessArbiter().run(tmp_path / "nope.txt", read_text)


@pytest.mark.asyncio
async def test_exclusive_create_refuses_existing_file(tmp_path):
    path = tmp_path / "keys.txt"
    path.write_text("keep me")
    with pytest.raises(FileExistsError):
        await FileAccessArbiter().run(path, lambda h: replace_text(h, "x"), exclusive_create=True)
    assert path.read_text() == "keep me"


@pytest.mark.asyncio
async def test_work_errors_propagate_and_release_lock(tmp_path):
    path = tmp_path / "keys.txt"
    path.write_text("")
    arbiter = FileAccessArbiter(attempts=1)

    def boom(handle):
        raise ValueError("bad")

    with pytest.raises(ValueError):
        await arbiter.run(path, boom)
    assert await arbiter.run(path, read_text) == ""


@posix_only
@pytest.mark.asyncio
async def test_contention_exhausts_retries(tmp_path, caplog):
    fcntl = pytest.importorskip("fcntl")
    path = tmp_path / "keys.txt"
    path.write_text("held")
    arbiter = FileAccessArbiter(attempts=3, retry_delay=0.01)

    with open(path, "rb+") as holder:
        fcntl.flock(holder.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        with pytest.raises(FileAccessError) as exc_info:
            await arbiter.run(path, read_text)

    assert exc_info.value.attempts == 3
    assert "busy" in caplog.text


@posix_only
@pytest.mark.asyncio
async def test_contention_recovers_when_holder_releases(tmp_path):
    fcntl = pytest.importorskip("fcntl")
    path = tmp_path / "keys.txt"
    path.write_text("content")
    arbiter = FileAccessArbiter(attempts=50, retry_delay=0.01)

    with open(path, "rb+") as holder:
        fcntl.flock(holder.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        asyncio.get_running_loop().call_later(0.05, fcntl.flock, holder.fileno(), fcntl.LOCK_UN)
        assert await arbiter.run(path, read_text) == "content"


@pytest.mark.asyncio
async def test_concurrent_writers_are_serialized(tmp_path):
    path = tmp_path / "counter.txt"
    path.write_text("0")
    arbiter = FileAccessArbiter(attempts=200, retry_delay=0.001)

    def bump(handle):
        replace_text(handle, str(int(read_text(handle)) + 1))

    await asyncio.gather(*(arbiter.run(path, bump) for _ in range(20)))
    assert path.read_text() == "20"


def test_attempts_must_be_positive():
    with pytest.raises(ValueError):
        FileAccessArbiter(attempts=0)
