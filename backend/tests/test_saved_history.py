from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

import pytest

from chameleon import storage as storage_module
from chameleon.errors import StorageError
from chameleon.history.saved import SavedHistory, open_saved_history
from chameleon.storage import SQLAlchemyRecordStorage


def test_starts_empty_and_clean(saved_history):
    assert len(saved_history) == 0
    assert saved_history.has_missing_files is False


def test_add_conversion(saved_history, make_file):
    saved_history.record("test.md", "markdown", "pdf", make_file("test.pdf"))
    assert len(saved_history) == 1
    record = saved_history.records[0]
    assert record.input_file_name == "test.md"
    assert record.input_format == "markdown"
    assert record.output_format == "pdf"
    assert record.output_file_name == "test.pdf"
    assert record.file_size == 12
    assert record.is_file_accessible is True


def test_most_recent_first(saved_history, tmp_path):
    for i in range(5):
        saved_history.record(f"f{i}.md", "markdown", "pdf", tmp_path / f"f{i}.pdf")
    names = [r.input_file_name for r in saved_history]
    assert names == ["f4.md", "f3.md", "f2.md", "f1.md", "f0.md"]
    stamps = [r.timestamp for r in saved_history]
    assert stamps == sorted(stamps, reverse=True)


def test_no_capacity_limit(saved_history, tmp_path):
    for i in range(60):
        saved_history.record(f"f{i}", "markdown", "pdf", tmp_path / f"f{i}.pdf")
    assert len(saved_history) == 60


def test_remove_keeps_output_file(saved_history, make_file):
    output = make_file("test.pdf")
    record = saved_history.record("test.md", "markdown", "pdf", output)
    assert saved_history.remove(record) is True
    assert len(saved_history) == 0
    assert output.exists()


def test_remove_absent_is_noop(saved_history, make_file):
    record = saved_history.record("test.md", "markdown", "pdf", make_file("test.pdf"))
    saved_history.record("other.md", "markdown", "pdf", make_file("other.pdf"))
    saved_history.remove(record)
    assert saved_history.remove(record) is False
    assert len(saved_history) == 1


def test_clear_all(saved_history, make_file):
    output = make_file("test.pdf")
    saved_history.record("test1.md", "markdown", "pdf", output)
    saved_history.record("test2.md", "markdown", "html", output)
    assert len(saved_history) == 2
    saved_history.clear_all()
    assert len(saved_history) == 0
    assert saved_history.storage.enumerate_all() == []


def test_survives_reopen(database_url, shell, make_file):
    history = open_saved_history(database_url, shell=shell)
    history.record("test.md", "markdown", "pdf", make_file("test.pdf"))
    history.record("b.png", "png", "webp", make_file("b.webp"), thumbnail_data=b"\x89PNG")

    reopened = open_saved_history(database_url, shell=shell)
    assert reopened.records == history.records


def test_reopened_store_keeps_ordering_for_new_records(database_url, shell, tmp_path):
    history = open_saved_history(database_url, shell=shell)
    history.record("old", "markdown", "pdf", tmp_path / "old.pdf")
    reopened = open_saved_history(database_url, shell=shell)
    reopened.record("new", "markdown", "pdf", tmp_path / "new.pdf")
    assert [r.input_file_name for r in reopened] == ["new", "old"]


def test_missing_files_scan_and_clear(saved_history, make_file):
    output = make_file("test_missing.pdf")
    saved_history.record("test.md", "markdown", "pdf", output)
    output.unlink()

    assert saved_history.scan_for_missing_files() is True
    assert saved_history.has_missing_files is True

    assert saved_history.clear_missing_files() == 1
    assert len(saved_history) == 0
    assert saved_history.has_missing_files is False


def test_clear_missing_keeps_present_files(saved_history, make_file):
    present = make_file("present.pdf")
    gone = make_file("gone.pdf")
    saved_history.record("present.md", "markdown", "pdf", present)
    saved_history.record("gone.md", "markdown", "pdf", gone)
    gone.unlink()
    saved_history.scan_for_missing_files()
    saved_history.clear_missing_files()
    assert [r.input_file_name for r in saved_history] == ["present.md"]


def test_clean_scan_resets_flag(saved_history, make_file):
    output = make_file("flaky.pdf")
    saved_history.record("flaky.md", "markdown", "pdf", output)
    output.unlink()
    assert saved_history.scan_for_missing_files() is True
    make_file("flaky.pdf")
    assert saved_history.scan_for_missing_files() is False
    assert saved_history.has_missing_files is False


def test_remove_does_not_reset_flag(saved_history, make_file):
    output = make_file("gone.pdf")
    record = saved_history.record("gone.md", "markdown", "pdf", output)
    output.unlink()
    saved_history.scan_for_missing_files()
    saved_history.remove(record)
    assert saved_history.has_missing_files is True


def test_flag_not_set_without_scan(saved_history, make_file):
    output = make_file("gone.pdf")
    saved_history.record("gone.md", "markdown", "pdf", output)
    output.unlink()
    assert saved_history.has_missing_files is False


def test_open_and_reveal_missing_file(saved_history, make_file, shell):
    output = make_file("test_open.txt")
    record = saved_history.record("test.md", "markdown", "plain", output)
    assert saved_history.open_file(record) is True
    assert saved_history.reveal_in_file_manager(record) is True

    # Deleted after the last scan: must be checked again
    output.unlink()
    assert saved_history.open_file(record) is False
    assert saved_history.reveal_in_file_manager(record) is False
    assert shell.opened == [output]
    assert shell.revealed == [output]


def _fail_commit(self):
    raise OperationalError("COMMIT", None, Exception("disk I/O error"))


def test_failed_insert_leaves_view_unchanged(saved_history, make_file, monkeypatch, database_url):
    saved_history.record("kept.md", "markdown", "pdf", make_file("kept.pdf"))
    before = saved_history.records

    monkeypatch.setattr(Session, "commit", _fail_commit)
    with pytest.raises(StorageError):
        saved_history.record("lost.md", "markdown", "pdf", make_file("lost.pdf"))
    assert saved_history.records == before
    monkeypatch.undo()

    reopened = SavedHistory(SQLAlchemyRecordStorage.from_url(database_url))
    assert [r.input_file_name for r in reopened] == ["kept.md"]


def test_failed_remove_leaves_view_unchanged(saved_history, make_file, monkeypatch):
    record = saved_history.record("kept.md", "markdown", "pdf", make_file("kept.pdf"))
    notified = []
    saved_history.subscribe(notified.append)

    monkeypatch.setattr(Session, "commit", _fail_commit)
    with pytest.raises(StorageError):
        saved_history.remove(record)
    with pytest.raises(StorageError):
        saved_history.clear_all()
    assert saved_history.records == (record,)
    assert notified == []


def test_failed_clear_missing_keeps_flag(saved_history, make_file, monkeypatch):
    output = make_file("gone.pdf")
    saved_history.record("gone.md", "markdown", "pdf", output)
    output.unlink()
    saved_history.scan_for_missing_files()

    monkeypatch.setattr(Session, "commit", _fail_commit)
    with pytest.raises(StorageError):
        saved_history.clear_missing_files()
    assert len(saved_history) == 1
    assert saved_history.has_missing_files is True


def _fail_load():
    raise StorageError("Failed to load records: database is locked")


def test_committed_writes_do_not_read_storage_again(saved_history, make_file, monkeypatch, database_url):
    kept = saved_history.record("kept.md", "markdown", "pdf", make_file("kept.pdf"))
    gone_path = make_file("gone.pdf")
    saved_history.record("gone.md", "markdown", "pdf", gone_path)
    gone_path.unlink()
    saved_history.scan_for_missing_files()

    monkeypatch.setattr(saved_history.storage, "enumerate_all", _fail_load)
    added = saved_history.record("new.md", "markdown", "pdf", make_file("new.pdf"))
    assert saved_history.records[0] == added
    assert saved_history.clear_missing_files() == 1
    assert saved_history.remove(kept) is True
    assert saved_history.records == (added,)
    monkeypatch.undo()

    reopened = open_saved_history(database_url)
    assert reopened.records == saved_history.records


def test_delete_many_spans_several_statements(database_url, tmp_path, monkeypatch):
    monkeypatch.setattr(storage_module, "DELETE_CHUNK_SIZE", 2)
    history = SavedHistory(SQLAlchemyRecordStorage.from_url(database_url))
    ids = [history.record(f"f{i}.md", "markdown", "pdf", tmp_path / f"f{i}.pdf").id for i in range(5)]

    assert history.storage.delete_many(ids + ["not-there"]) == 5
    assert history.storage.enumerate_all() == []


def test_clear_missing_in_chunks(saved_history, tmp_path, monkeypatch):
    monkeypatch.setattr(storage_module, "DELETE_CHUNK_SIZE", 2)
    for i in range(5):
        saved_history.record(f"f{i}.md", "markdown", "pdf", tmp_path / f"f{i}.pdf")
    saved_history.scan_for_missing_files()

    assert saved_history.clear_missing_files() == 5
    assert len(saved_history) == 0
    assert saved_history.has_missing_files is False
