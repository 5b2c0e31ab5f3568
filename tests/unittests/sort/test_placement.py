import shutil
import threading
from pathlib import Path

import pytest

from filesort.exceptions import DestinationTakenError
from filesort.sort import placement as placement_module
from filesort.sort.placement import PlacementEngine, copy_verified, temp_path_for
from filesort.sort.types import Deferred, PermanentFailure, Placed, ResolvedName


@pytest.fixture
def source(tmp_path) -> Path:
    path = tmp_path / "in" / "file.dcm"
    path.parent.mkdir()
    path.write_bytes(b"DICM" * 100)
    return path


@pytest.fixture
def engine():
    engine = PlacementEngine(io_timeout=5, copy_attempts=3, remove_attempts=2, retry_delay=0)
    yield engine
    engine.close()


def flaky(func, failures: int, error: Exception):
    """Wrap ``func`` so that its first ``failures`` calls raise ``error``."""
    calls = {"n": 0}

    def wrapper(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] <= failures:
            raise error
        return func(*args, **kwargs)

    wrapper.calls = calls
    return wrapper


def test_temp_path_is_hidden_sibling(tmp_path):
    tmp = temp_path_for(tmp_path / "CT_abc.dcm")
    assert tmp.parent == tmp_path
    assert tmp.name.startswith(".CT_abc.dcm.")
    assert tmp.name.endswith(".part")


def test_copy_verified_leaves_no_temp_files(tmp_path, source):
    dest = tmp_path / "out" / "CT_abc.dcm"
    dest.parent.mkdir()
    copy_verified(source, dest)
    assert dest.read_bytes() == source.read_bytes()
    assert [p.name for p in dest.parent.iterdir()] == ["CT_abc.dcm"]


def test_copy_verified_never_replaces_other_content(tmp_path, source):
    dest = tmp_path / "out" / "CT_abc.dcm"
    dest.parent.mkdir()
    dest.write_bytes(b"someone else")

    with pytest.raises(DestinationTakenError):
        copy_verified(source, dest)

    assert dest.read_bytes() == b"someone else"
    assert [p.name for p in dest.parent.iterdir()] == ["CT_abc.dcm"]


def test_copy_verified_accepts_identical_destination(tmp_path, source):
    dest = tmp_path / "out" / "CT_abc.dcm"
    dest.parent.mkdir()
    dest.write_bytes(source.read_bytes())

    copy_verified(source, dest)

    assert [p.name for p in dest.parent.iterdir()] == ["CT_abc.dcm"]


def test_abandoned_copy_cannot_overwrite_later_placement(tmp_path, monkeypatch):
    first = tmp_path / "x" / "img.dat"
    second = tmp_path / "y" / "img.dat"
    for path, payload in ((first, b"AAAA"), (second, b"BBBB")):
        path.parent.mkdir()
        path.write_bytes(payload)
    dest = tmp_path / "out" / "img.dat"

    release = threading.Event()
    workers = []
    real_copy2 = shutil.copy2

    def slow_copy2(src, dst, *args, **kwargs):
        if Path(src) == first:
            workers.append(threading.current_thread())
            release.wait(5)
        return real_copy2(src, dst, *args, **kwargs)

    monkeypatch.setattr(shutil, "copy2", slow_copy2)
    engine = PlacementEngine(io_timeout=0.2, copy_attempts=1, retry_delay=0)
    try:
        assert isinstance(engine.place(first, ResolvedName(dest)), Deferred)
        assert engine.place(second, ResolvedName(dest)) == Placed(dest)
    finally:
        release.set()
        engine.close()
    for worker in workers:
        worker.join(5)

    assert dest.read_bytes() == b"BBBB"
    assert first.read_bytes() == b"AAAA"
    assert [p.name for p in dest.parent.iterdir()] == ["img.dat"]


def test_destination_taken_during_copy_defers(tmp_path, source, engine, monkeypatch):
    def raced(src, dest):
        dest.write_bytes(b"other file")
        copy_verified(src, dest)

    monkeypatch.setattr(placement_module, "copy_verified", raced)
    dest = tmp_path / "out" / "CT_abc.dcm"

    outcome = engine.place(source, ResolvedName(dest))

    assert isinstance(outcome, Deferred)
    assert source.exists()
    assert dest.read_bytes() == b"other file"


def test_place_moves_file_and_creates_directories(tmp_path, source, engine):
    content = source.read_bytes()
    dest = tmp_path / "out" / "patient_id" / "12345" / "CT_abc.dcm"

    outcome = engine.place(source, ResolvedName(dest))

    assert outcome == Placed(dest, copied=True, source_removed=True)
    assert dest.read_bytes() == content
    assert not source.exists()


def test_existing_destination_directory_is_fine(tmp_path, source, engine):
    dest = tmp_path / "out" / "CT_abc.dcm"
    dest.parent.mkdir()
    assert isinstance(engine.place(source, ResolvedName(dest)), Placed)


def test_already_placed_only_removes_source(tmp_path, source, engine):
    dest = tmp_path / "out" / "CT_abc.dcm"
    dest.parent.mkdir()
    dest.write_bytes(b"authoritative")

    outcome = engine.place(source, ResolvedName(dest, already_placed=True))

    assert outcome == Placed(dest, copied=False, source_removed=True)
    assert dest.read_bytes() == b"authoritative"
    assert not source.exists()


def test_transient_copy_errors_are_retried(tmp_path, source, engine, monkeypatch):
    wrapper = flaky(copy_verified, failures=2, error=PermissionError("locked"))
    monkeypatch.setattr(placement_module, "copy_verified", wrapper)
    dest = tmp_path / "out" / "CT_abc.dcm"

    outcome = engine.place(source, ResolvedName(dest))

    assert isinstance(outcome, Placed)
    assert wrapper.calls["n"] == 3
    assert dest.exists()


def test_exhausted_copy_attempts_defer_and_keep_source(tmp_path, source, engine, monkeypatch):
    wrapper = flaky(copy_verified, failures=10, error=OSError("share unavailable"))
    monkeypatch.setattr(placement_module, "copy_verified", wrapper)
    dest = tmp_path / "out" / "CT_abc.dcm"

    outcome = engine.place(source, ResolvedName(dest))

    assert isinstance(outcome, Deferred)
    assert "share unavailable" in outcome.reason
    assert wrapper.calls["n"] == 3
    assert source.exists()
    assert not dest.exists()


def test_retry_delay_between_attempts(tmp_path, source, monkeypatch):
    sleeps = []
    engine = PlacementEngine(
        io_timeout=5, copy_attempts=3, retry_delay=0.25, sleep=sleeps.append
    )
    monkeypatch.setattr(
        placement_module,
        "copy_verified",
        flaky(copy_verified, failures=10, error=OSError("busy")),
    )

    engine.place(source, ResolvedName(tmp_path / "out" / "x.dcm"))

    # no pause after the last attempt
    assert sleeps == [0.25, 0.25]
    engine.close()


def test_hanging_copy_attempt_times_out(tmp_path, source, monkeypatch):
    release = threading.Event()
    calls = {"n": 0}

    def hang_once(src, dest):
        calls["n"] += 1
        if calls["n"] == 1:
            release.wait(5)
            return
        copy_verified(src, dest)

    monkeypatch.setattr(placement_module, "copy_verified", hang_once)
    engine = PlacementEngine(io_timeout=0.1, copy_attempts=2, retry_delay=0)
    dest = tmp_path / "out" / "CT_abc.dcm"
    try:
        outcome = engine.place(source, ResolvedName(dest))
    finally:
        release.set()
        engine.close()

    assert isinstance(outcome, Placed)
    assert calls["n"] == 2
    assert dest.exists()


def test_failed_source_removal_is_soft(tmp_path, source, engine, monkeypatch):
    def locked(path):
        raise PermissionError("held by writer")

    monkeypatch.setattr(placement_module, "remove_source", locked)
    dest = tmp_path / "out" / "CT_abc.dcm"

    outcome = engine.place(source, ResolvedName(dest))

    assert outcome == Placed(dest, copied=True, source_removed=False)
    assert dest.exists()
    assert source.exists()


def test_source_removal_retried(tmp_path, source, engine, monkeypatch):
    wrapper = flaky(placement_module.remove_source, failures=1, error=PermissionError("locked"))
    monkeypatch.setattr(placement_module, "remove_source", wrapper)

    outcome = engine.place(source, ResolvedName(tmp_path / "out" / "x.dcm"))

    assert outcome.source_removed
    assert wrapper.calls["n"] == 2
    assert not source.exists()


def test_vanished_source_is_permanent_failure(tmp_path, engine):
    outcome = engine.place(tmp_path / "gone.dcm", ResolvedName(tmp_path / "out" / "x.dcm"))
    assert isinstance(outcome, PermanentFailure)


def test_source_vanishing_during_copy(tmp_path, source, engine, monkeypatch):
    def vanish(src, dest):
        src.unlink()
        copy_verified(src, dest)

    monkeypatch.setattr(placement_module, "copy_verified", vanish)
    outcome = engine.place(source, ResolvedName(tmp_path / "out" / "x.dcm"))
    assert isinstance(outcome, PermanentFailure)


def test_invalid_attempt_counts():
    with pytest.raises(ValueError):
        PlacementEngine(copy_attempts=0)
