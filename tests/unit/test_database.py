"""
Unit tests for the SQLite record store.
"""

import pytest

from url_analyzer.errors import StoreConflictError
from url_analyzer.storage.models import AnalysisRecord, AnalysisStatus, ContentType


def make_record(url, **fields):
    fields.setdefault("created_at", "2024-05-01T10:00:00+00:00")
    fields.setdefault("updated_at", fields["created_at"])
    return AnalysisRecord(id=None, url=url, **fields)


class TestRecords:
    def test_insert_assigns_id(self, db):
        record = db.insert_record(make_record("https://a.example"))
        assert record.id is not None
        assert record.status is AnalysisStatus.PENDING
        assert db.get_by_url("https://a.example") == record
        assert db.get_by_id(record.id) == record

    def test_missing_record(self, db):
        assert db.get_by_url("https://missing.example") is None
        assert db.get_by_id(999) is None

    def test_duplicate_url_rejected(self, db):
        db.insert_record(make_record("https://a.example"))
        with pytest.raises(StoreConflictError):
            db.insert_record(make_record("https://a.example"))

    def test_raw_insert_gets_default_timestamps(self, db):
        record = db.insert_record(AnalysisRecord(id=None, url="https://a.example"))
        assert record.created_at
        assert record.updated_at

    def test_update_overwrites_row(self, db):
        record = db.insert_record(make_record("https://a.example"))
        record.status = AnalysisStatus.COMPLETED
        record.title = "Title"
        record.content = "Body"
        record.word_count = 1
        record.content_type = ContentType.NEWS
        record.updated_at = "2024-05-02T00:00:00+00:00"
        db.update_record(record)

        stored = db.get_by_id(record.id)
        assert stored.status is AnalysisStatus.COMPLETED
        assert stored.title == "Title"
        assert stored.content_type is ContentType.NEWS
        assert stored.created_at == "2024-05-01T10:00:00+00:00"
        assert stored.updated_at == "2024-05-02T00:00:00+00:00"

    def test_update_requires_id(self, db):
        with pytest.raises(ValueError):
            db.update_record(make_record("https://a.example"))


class TestDelete:
    def test_delete_cascades_tags(self, db):
        record = db.insert_record(make_record("https://a.example"))
        db.add_tags(record.id, ["python", "web"], 0.8, "2024-05-01T10:00:00+00:00")
        assert len(db.get_tags(record.id)) == 2

        assert db.delete_record(record.id) is True
        assert db.get_by_id(record.id) is None
        assert db.get_tags(record.id) == []
        assert db.get_tag_counts() == []

    def test_delete_missing(self, db):
        assert db.delete_record(42) is False


class TestListRecords:
    @pytest.fixture
    def populated(self, db):
        db.insert_record(make_record(
            "https://a.example/blog", status=AnalysisStatus.COMPLETED,
            content="Python tips and 100% coverage", content_type=ContentType.BLOG,
            language="en", created_at="2024-01-10T00:00:00+00:00",
        ))
        db.insert_record(make_record(
            "https://b.example/news", status=AnalysisStatus.COMPLETED,
            content="Market news today", content_type=ContentType.NEWS,
            language="en", created_at="2024-02-10T00:00:00+00:00",
        ))
        db.insert_record(make_record(
            "https://c.example", status=AnalysisStatus.FAILED,
            error_message="HTTP 500", created_at="2024-03-10T00:00:00+00:00",
        ))
        return db

    def test_newest_first_with_total(self, populated):
        records, total = populated.list_records()
        assert total == 3
        assert [r.url for r in records] == [
            "https://c.example", "https://b.example/news", "https://a.example/blog",
        ]

    def test_pagination(self, populated):
        records, total = populated.list_records(page=2, per_page=2)
        assert total == 3
        assert [r.url for r in records] == ["https://a.example/blog"]

    def test_status_and_type_filters(self, populated):
        records, total = populated.list_records(
            status=AnalysisStatus.COMPLETED, content_type=ContentType.NEWS
        )
        assert total == 1
        assert records[0].url == "https://b.example/news"

    def test_search_is_literal_substring(self, populated):
        records, _ = populated.list_records(search="100%")
        assert [r.url for r in records] == ["https://a.example/blog"]

        records, _ = populated.list_records(search="%")
        assert len(records) == 1

    def test_date_range(self, populated):
        records, _ = populated.list_records(date_from="2024-02-01", date_to="2024-03-01")
        assert [r.url for r in records] == ["https://b.example/news"]

    def test_language_filter(self, populated):
        _, total = populated.list_records(language="en")
        assert total == 2


class TestTags:
    def test_duplicate_tags_accumulate(self, db):
        record = db.insert_record(make_record("https://a.example"))
        db.add_tags(record.id, ["python"], 0.8, "t1")
        db.add_tags(record.id, ["python"], 0.8, "t2")

        tags = db.get_tags(record.id)
        assert [t.tag for t in tags] == ["python", "python"]
        assert all(t.url_id == record.id for t in tags)

    def test_tag_counts_sorted_and_filtered(self, db):
        a = db.insert_record(make_record("https://a.example"))
        b = db.insert_record(make_record("https://b.example"))
        db.add_tags(a.id, ["python", "web"], 0.8, "t")
        db.add_tags(b.id, ["python"], 0.8, "t")
        db.add_tags(b.id, ["low"], 0.2, "t")

        assert db.get_tag_counts() == [("python", 2), ("low", 1), ("web", 1)]
        assert db.get_tag_counts(min_confidence=0.5) == [("python", 2), ("web", 1)]
        assert db.get_tag_counts(limit=1) == [("python", 2)]

    def test_stats(self, db):
        a = db.insert_record(make_record("https://a.example", status=AnalysisStatus.COMPLETED))
        db.insert_record(make_record("https://b.example", status=AnalysisStatus.FAILED))
        db.add_tags(a.id, ["x", "y"], 0.8, "t")

        assert db.get_stats() == {
            "total": 2, "completed": 1, "pending": 0, "failed": 1, "tagged": 1,
        }
