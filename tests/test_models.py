"""Tests for tree_uploader models."""
import pytest
from tree_uploader.handles import MemoryReadable
from tree_uploader.models import (
    LeafDescriptor,
    TaskStatus,
    UploadConfig,
    UploadTask,
)


class TestLeafDescriptor:
    def test_fields(self):
        leaf = LeafDescriptor(("photos", "img.png"), 3, MemoryReadable(b"abc"), 1700000000000)
        assert leaf.name == "img.png"
        assert leaf.display_path == "photos/img.png"
        assert leaf.last_modified == 1700000000000

    def test_immutable(self):
        leaf = LeafDescriptor(("a.txt",), 0, MemoryReadable(b""))
        with pytest.raises(AttributeError):
            leaf.size_bytes = 5

    def test_rejects_empty_path(self):
        with pytest.raises(ValueError):
            LeafDescriptor((), 0, MemoryReadable(b""))

    def test_rejects_negative_size(self):
        with pytest.raises(ValueError):
            LeafDescriptor(("a",), -1, MemoryReadable(b""))


class TestUploadTask:
    def test_defaults(self):
        leaf = LeafDescriptor(("a.txt",), 10, MemoryReadable(b"0123456789"))
        task = UploadTask(descriptor=leaf, destination_url="https://host/dir/a.txt")
        assert task.status == TaskStatus.PENDING
        assert task.bytes_sent == 0
        assert task.started_at is None
        assert task.filename == "a.txt"
        assert task.size_bytes == 10
        assert task.is_terminal is False

    def test_terminal_statuses(self):
        assert TaskStatus.SUCCEEDED.is_terminal
        assert TaskStatus.FAILED.is_terminal
        assert TaskStatus.CANCELLED.is_terminal
        assert not TaskStatus.ACTIVE.is_terminal
        assert not TaskStatus.PENDING.is_terminal


class TestUploadConfig:
    def test_defaults(self):
        config = UploadConfig()
        assert config.max_concurrency is None
        assert config.count_first is True
        assert config.page_size == 100

    def test_validation(self):
        with pytest.raises(ValueError):
            UploadConfig(max_concurrency=0)
        with pytest.raises(ValueError):
            UploadConfig(chunk_size=0)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("TREE_UP_MAX_PARALLEL", "4")
        monkeypatch.setenv("TREE_UP_COUNT_FIRST", "no")
        monkeypatch.setenv("TREE_UP_TIMEOUT", "5")
        config = UploadConfig.from_env()
        assert config.max_concurrency == 4
        assert config.count_first is False
        assert config.timeout == 5.0

    def test_from_env_overrides(self, monkeypatch):
        monkeypatch.setenv("TREE_UP_MAX_PARALLEL", "4")
        monkeypatch.delenv("TREE_UP_COUNT_FIRST", raising=False)
        config = UploadConfig.from_env(max_concurrency=2, count_first=None)
        assert config.max_concurrency == 2
        assert config.count_first is True
