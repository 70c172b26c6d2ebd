"""
Unit tests for ContentStore.
"""

import os

import pytest

from casserve.errors import DigestMismatch, InvalidKey, NotFound, StreamAborted, WriteError
from casserve.keys import content_key_for
from casserve.objects import ContentStore, _fs

ZERO_KEY = "sha256-" + "0" * 64


def _tmp_files(store):
    return os.listdir(store.layout.tmp_dir)


class TestContentStorePut:
    """Tests for ContentStore.put()"""

    @pytest.mark.p0
    def test_put_then_get_round_trip(self, content_store, sample_blob):
        key, data = sample_blob
        info = content_store.put(key, data)

        assert info.key == key
        assert info.size == len(data)
        assert content_store.read_bytes(key) == data

    @pytest.mark.p0
    def test_put_from_chunks(self, content_store):
        chunks = [b"abc", b"", b"def", b"g" * 100000]
        data = b"".join(chunks)
        key = content_key_for(data)

        content_store.put(key, iter(chunks))

        assert content_store.read_bytes(key) == data

    @pytest.mark.p0
    def test_empty_object(self, content_store):
        key = content_key_for(b"")
        content_store.put(key, b"")
        assert content_store.read_bytes(key) == b""

    @pytest.mark.p0
    def test_digest_mismatch_is_rejected(self, content_store):
        with pytest.raises(DigestMismatch) as exc_info:
            content_store.put(ZERO_KEY, b"not zeros")

        assert exc_info.value.actual == content_key_for(b"not zeros")[len("sha256-"):]
        assert not content_store.exists(ZERO_KEY)
        assert _tmp_files(content_store) == []

    @pytest.mark.p1
    def test_unverified_store_accepts_any_bytes(self, layout):
        store = ContentStore(layout, verify_digests=False)
        store.put(ZERO_KEY, b"anything")
        assert store.read_bytes(ZERO_KEY) == b"anything"

    @pytest.mark.p1
    def test_overwrite_is_idempotent(self, content_store, sample_blob):
        key, data = sample_blob
        content_store.put(key, data)
        content_store.put(key, data)
        assert content_store.read_bytes(key) == data

    @pytest.mark.p0
    def test_invalid_key_never_touches_storage(self, content_store):
        with pytest.raises(InvalidKey):
            content_store.put("../escape", b"x")
        assert os.listdir(content_store.layout.content_dir) == []
        assert _tmp_files(content_store) == []

    @pytest.mark.p0
    def test_aborted_stream_publishes_nothing(self, content_store):
        data = b"partial"
        key = content_key_for(data + b" and the rest")

        def body():
            yield data
            raise ConnectionResetError("client went away")

        with pytest.raises(StreamAborted):
            content_store.put(key, body())

        assert not content_store.exists(key)
        assert _tmp_files(content_store) == []


class TestContentWriter:
    """Tests for ContentStore.open_writer()"""

    @pytest.mark.p0
    def test_nothing_visible_before_commit(self, content_store, sample_blob):
        key, data = sample_blob
        with content_store.open_writer(key) as writer:
            writer.write(data[:5])
            assert not content_store.exists(key)
            writer.write(data[5:])
            assert not content_store.exists(key)
            writer.commit()

        assert content_store.read_bytes(key) == data

    @pytest.mark.p0
    def test_leaving_block_without_commit_discards(self, content_store, sample_blob):
        key, data = sample_blob
        with content_store.open_writer(key) as writer:
            writer.write(data)

        assert writer.closed
        assert not content_store.exists(key)
        assert _tmp_files(content_store) == []

    @pytest.mark.p1
    def test_write_after_commit_fails(self, content_store, sample_blob):
        key, data = sample_blob
        writer = content_store.open_writer(key)
        writer.write(data)
        writer.commit()

        with pytest.raises(ValueError):
            writer.write(b"more")

    @pytest.mark.p1
    def test_tracks_size_and_digest(self, content_store, sample_blob):
        key, data = sample_blob
        with content_store.open_writer(key) as writer:
            writer.write(data)
            assert writer.size == len(data)
            assert "sha256-" + writer.hexdigest() == key

    @pytest.mark.p1
    def test_publish_failure_is_write_error(self, content_store, sample_blob, monkeypatch):
        key, data = sample_blob

        def failing_replace(src, dst):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(os, "replace", failing_replace)
        with pytest.raises(WriteError):
            content_store.put(key, data)

        monkeypatch.undo()
        assert not content_store.exists(key)
        assert _tmp_files(content_store) == []

    @pytest.mark.p1
    def test_dir_sync_failure_after_publish_is_not_an_error(
        self, content_store, sample_blob, monkeypatch, caplog
    ):
        key, data = sample_blob

        def failing_fsync_dir(path):
            raise OSError(5, "Input/output error")

        monkeypatch.setattr(_fs, "fsync_dir", failing_fsync_dir)
        with caplog.at_level("WARNING", logger="casserve.objects"):
            info = content_store.put(key, data)

        assert info.key == key
        assert content_store.read_bytes(key) == data
        assert "could not sync" in caplog.text


class TestContentStoreGet:
    """Tests for ContentStore.get()"""

    @pytest.mark.p0
    def test_missing_object_raises_not_found_eagerly(self, content_store):
        with pytest.raises(NotFound):
            content_store.get(ZERO_KEY)

    @pytest.mark.p0
    def test_invalid_key_raises(self, content_store):
        with pytest.raises(InvalidKey):
            content_store.get("sha256-nothex")

    @pytest.mark.p1
    def test_get_streams_in_chunks(self, layout):
        store = ContentStore(layout, chunk_size=4)
        data = b"0123456789"
        key = content_key_for(data)
        store.put(key, data)

        chunks = list(store.get(key))

        assert chunks == [b"0123", b"4567", b"89"]

    @pytest.mark.p1
    def test_each_get_is_independent(self, content_store, sample_blob):
        key, data = sample_blob
        content_store.put(key, data)

        first = content_store.get(key)
        second = content_store.get(key)

        assert b"".join(first) == data
        assert b"".join(second) == data

    @pytest.mark.p1
    def test_close_before_reading_releases_file(self, content_store, sample_blob):
        key, data = sample_blob
        content_store.put(key, data)

        reader = content_store.get(key)
        reader.close()

        assert reader.closed
        assert list(reader) == []

    @pytest.mark.p1
    def test_abandoned_stream_can_be_closed(self, layout):
        store = ContentStore(layout, chunk_size=4)
        data = b"0123456789"
        key = content_key_for(data)
        store.put(key, data)

        reader = store.get(key)
        assert next(reader) == b"0123"
        reader.close()

        assert reader.closed

    @pytest.mark.p1
    def test_exhausted_stream_is_closed(self, content_store, sample_blob):
        key, data = sample_blob
        content_store.put(key, data)

        reader = content_store.get(key)
        assert b"".join(reader) == data
        assert reader.closed

    @pytest.mark.p2
    def test_size_and_exists(self, content_store, sample_blob):
        key, data = sample_blob
        assert content_store.exists(key) is False
        assert content_store.exists("not-a-key") is False
        content_store.put(key, data)
        assert content_store.exists(key) is True
        assert content_store.size(key) == len(data)

    @pytest.mark.p2
    def test_size_of_missing_object(self, content_store):
        with pytest.raises(NotFound):
            content_store.size(ZERO_KEY)
