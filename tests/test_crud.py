from datetime import datetime

import pytest

from linkshort import crud
from linkshort.validators import is_valid_code


def test_generate_code_shape():
    for _ in range(50):
        code = crud.generate_code()
        assert len(code) == 6
        assert is_valid_code(code)
        assert all(c in crud.ALPHABET for c in code)


def test_alphabet_is_62_alphanumerics():
    assert len(set(crud.ALPHABET)) == 62
    assert crud.ALPHABET.isalnum()


def test_create_and_get(db):
    link = crud.create_link(db, "abc123", "https://example.com")
    assert link.clicks == 0
    assert link.created_at is not None
    assert link.last_clicked is None

    found = crud.get_link(db, "abc123")
    assert found.url == "https://example.com"


def test_codes_are_case_sensitive(db):
    crud.create_link(db, "abcdef", "https://lower.example")
    crud.create_link(db, "ABCDEF", "https://upper.example")
    assert crud.get_link(db, "abcdef").url == "https://lower.example"
    assert crud.get_link(db, "ABCDEF").url == "https://upper.example"


def test_duplicate_insert_raises_and_keeps_original(db):
    crud.create_link(db, "dup123", "https://first.example")
    with pytest.raises(crud.DuplicateCode) as excinfo:
        crud.create_link(db, "dup123", "https://second.example")
    assert excinfo.value.code == "dup123"
    assert crud.get_link(db, "dup123").url == "https://first.example"


def test_generate_unique_code_skips_taken(db, monkeypatch):
    crud.create_link(db, "taken1", "https://example.com")
    candidates = iter(["taken1", "taken1", "free01"])
    monkeypatch.setattr(crud, "generate_code", lambda length=6: next(candidates))
    assert crud.generate_unique_code(db) == "free01"


def test_generated_code_insert_retries_after_lost_race(db, monkeypatch):
    crud.create_link(db, "raced1", "https://example.com")
    candidates = iter(["raced1", "winner"])
    monkeypatch.setattr(crud, "generate_code", lambda length=6: next(candidates))
    # Pretend the pre-check ran before the competing insert landed
    monkeypatch.setattr(crud, "code_exists", lambda db, code: False)

    link = crud.create_link_with_generated_code(db, "https://other.example")
    assert link.code == "winner"
    assert crud.get_link(db, "raced1").url == "https://example.com"


def test_list_is_newest_first(db):
    for code in ("first1", "second", "third3"):
        crud.create_link(db, code, "https://example.com/" + code)
    assert [link.code for link in crud.list_links(db)] == ["third3", "second", "first1"]


def test_delete(db):
    crud.create_link(db, "gone12", "https://example.com")
    assert crud.delete_link(db, "gone12") is True
    assert crud.get_link(db, "gone12") is None
    assert crud.delete_link(db, "gone12") is False


def test_record_click_counts_every_call(db):
    crud.create_link(db, "count1", "https://example.com")
    for _ in range(5):
        assert crud.record_click(db, "count1") == "https://example.com"

    link = crud.get_link(db, "count1")
    assert link.clicks == 5
    assert link.last_clicked is not None
    assert link.created_at is not None


def test_record_click_unknown_code(db):
    assert crud.record_click(db, "nope00") is None


def test_code_exists(db):
    assert not crud.code_exists(db, "here12")
    crud.create_link(db, "here12", "https://example.com")
    assert crud.code_exists(db, "here12")


def test_record_click_keeps_created_at(db):
    created_at = crud.create_link(db, "stamp1", "https://example.com").created_at
    for _ in range(3):
        crud.record_click(db, "stamp1")

    link = crud.get_link(db, "stamp1")
    assert link.created_at == created_at
    assert link.last_clicked >= created_at


def test_record_click_moves_last_clicked_forward(db):
    link = crud.create_link(db, "stamp2", "https://example.com")
    long_ago = datetime(2000, 1, 1)
    link.last_clicked = long_ago
    db.commit()

    crud.record_click(db, "stamp2")
    first = crud.get_link(db, "stamp2").last_clicked
    assert first > long_ago

    crud.record_click(db, "stamp2")
    second = crud.get_link(db, "stamp2").last_clicked
    assert second >= first
