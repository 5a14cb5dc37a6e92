"""End-to-end batch scenarios through UploadOrchestrator."""
import asyncio
from typing import List

import httpx
import pytest
from tree_uploader.enumerator import TreeEnumerator
from tree_uploader.handles import MemoryDirectory, MemoryFile, MemoryReadable, PagedCursor
from tree_uploader.models import UploadConfig
from tree_uploader.orchestrator import BatchUploadResult, ProcessState, UploadOrchestrator
from tree_uploader.protocols import ContainerHandle, FileHandle

BASE_URL = "https://host/dir/"


class RecordingServer:
    """MockTransport handler that answers PUTs and remembers them."""

    def __init__(self, fail_paths=(), delay: float = 0.0):
        self.requests: List[httpx.Request] = []
        self.fail_paths = set(fail_paths)
        self.delay = delay

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if request.url.path in self.fail_paths:
            return httpx.Response(500, text="boom")
        return httpx.Response(201)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


class SharedCursorDirectory(ContainerHandle):
    """A container that wrongly hands out the same cursor every time."""

    def __init__(self, name, children):
        self._name = name
        children = list(children)

        async def load():
            return children

        self._cursor = PagedCursor(load)

    @property
    def name(self):
        return self._name

    def open_cursor(self):
        return self._cursor


class SlowMemoryFile(FileHandle):
    """Resolves after a delay, so earlier transfers finish mid-walk."""

    def __init__(self, name, data, delay=0.02):
        self._name = name
        self._data = data
        self._delay = delay

    @property
    def name(self):
        return self._name

    async def resolve(self):
        await asyncio.sleep(self._delay)
        return MemoryReadable(self._data)


async def run_batch(server: RecordingServer, roots, config=None, **subscriptions) -> BatchUploadResult:
    async with server.client() as client:
        async with UploadOrchestrator(BASE_URL, config=config, client=client) as orchestrator:
            process = orchestrator.upload(roots)
            for event, callback in subscriptions.items():
                getattr(process, event)(callback)
            return await process.wait()


class TestBatchScenarios:
    @pytest.mark.asyncio
    async def test_single_flat_file(self):
        server = RecordingServer()
        remaining = []
        completions = []

        async with server.client() as client:
            async with UploadOrchestrator(BASE_URL, client=client) as orchestrator:
                process = orchestrator.upload([MemoryFile("a.txt", b"0123456789")])
                process.on_counted(lambda n: remaining.append(process.batch.remaining_count))
                process.on_batch_complete(completions.append)
                result = await process.wait()

        remaining.append(process.batch.remaining_count)
        assert remaining == [1, 0]
        assert len(completions) == 1
        assert result.total_files == 1
        assert result.tasks[0].destination_url == "https://host/dir/a.txt"
        assert result.all_success is True
        assert process.state == ProcessState.COMPLETED

    @pytest.mark.asyncio
    async def test_nested_container(self):
        server = RecordingServer()
        root = MemoryDirectory.from_dict("my photos", {"2020": {"img 1.png": b"png"}})
        result = await run_batch(server, [root])

        task = result.tasks[0]
        assert task.descriptor.relative_path == ("my photos", "2020", "img 1.png")
        assert task.destination_url == "https://host/dir/my%20photos/2020/img%201.png"
        assert server.requests[0].url.raw_path == b"/dir/my%20photos/2020/img%201.png"

    @pytest.mark.asyncio
    async def test_partial_failure_still_completes(self):
        server = RecordingServer(fail_paths={"/dir/bad.txt"})
        completions = []
        failed = []
        result = await run_batch(
            server,
            [MemoryFile("good.txt", b"g"), MemoryFile("bad.txt", b"b")],
            on_batch_complete=completions.append,
            on_task_fail=failed.append,
        )

        assert len(completions) == 1
        batch = completions[0]
        assert batch.remaining_count == 0
        assert batch.any_failed is True
        assert result.uploaded_files == 1
        assert result.failed_files == 1
        assert result.success is True
        assert result.all_success is False
        assert [t.filename for t in failed] == ["bad.txt"]
        assert failed[0].error.status_code == 500

    @pytest.mark.asyncio
    async def test_empty_container_completes_immediately(self):
        server = RecordingServer()
        counted = []
        completions = []
        result = await run_batch(
            server,
            [MemoryDirectory("empty")],
            on_counted=counted.append,
            on_batch_complete=completions.append,
        )

        assert counted == [0]
        assert len(completions) == 1
        assert result.tasks == []
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_empty_container_without_counting_pass(self):
        server = RecordingServer()
        completions = []
        result = await run_batch(
            server,
            [MemoryDirectory("empty")],
            config=UploadConfig(count_first=False),
            on_batch_complete=completions.append,
        )
        assert len(completions) == 1
        assert result.expected_files == 0

    @pytest.mark.asyncio
    async def test_count_matches_started_tasks(self):
        tree = {
            "a": {f"{i}.txt": b"x" * i for i in range(5)},
            "b": {"c": {"d.txt": b"d"}},
            "e.txt": b"e",
        }
        root = MemoryDirectory.from_dict("root", tree, page_size=2)
        counted = await TreeEnumerator().count([root])

        server = RecordingServer()
        result = await run_batch(server, [root])

        assert counted == 7
        assert result.expected_files == counted
        assert result.total_files == counted
        assert len(server.requests) == counted

    @pytest.mark.asyncio
    async def test_remaining_count_never_increases(self):
        server = RecordingServer(fail_paths={"/dir/root/2.txt"}, delay=0.001)
        root = MemoryDirectory.from_dict("root", {f"{i}.txt": b"x" for i in range(6)})
        observed = []
        completions = []

        async with server.client() as client:
            async with UploadOrchestrator(BASE_URL, client=client) as orchestrator:
                process = orchestrator.upload([root])

                def record(task):
                    observed.append(process.batch.remaining_count)

                process.on_task_complete(record)
                process.on_task_fail(record)
                process.on_batch_complete(completions.append)
                await process.wait()

        assert sorted(observed, reverse=True) == observed
        assert observed[-1] == 0
        assert min(observed) >= 0
        assert len(completions) == 1

    @pytest.mark.parametrize("count_first", [False, True])
    @pytest.mark.asyncio
    async def test_remaining_reaches_zero_once_during_slow_walk(self, count_first):
        server = RecordingServer()
        files = [SlowMemoryFile(f"{i}.txt", b"x") for i in range(4)]
        observed = []

        async with server.client() as client:
            config = UploadConfig(count_first=count_first)
            async with UploadOrchestrator(BASE_URL, config=config, client=client) as orchestrator:
                process = orchestrator.upload([MemoryDirectory("root", files)])
                process.on_task_complete(lambda task: observed.append(process.batch.remaining_count))
                result = await process.wait()

        assert result.uploaded_files == 4
        assert len(observed) == 4
        assert observed.count(0) == 1
        assert observed[-1] == 0

    @pytest.mark.asyncio
    async def test_upload_pass_finds_more_than_counted(self):
        # the first walk sees one file, the second sees three
        class GrowingDirectory(ContainerHandle):
            def __init__(self):
                self.walks = 0

            @property
            def name(self):
                return "root"

            def open_cursor(self):
                self.walks += 1
                size = 1 if self.walks == 1 else 3
                children = [SlowMemoryFile(f"{i}.txt", b"x") for i in range(size)]

                async def load():
                    return children

                return PagedCursor(load)

        server = RecordingServer()
        observed = []
        async with server.client() as client:
            async with UploadOrchestrator(BASE_URL, client=client) as orchestrator:
                process = orchestrator.upload([GrowingDirectory()])
                process.on_task_complete(lambda task: observed.append(process.batch.remaining_count))
                result = await process.wait()

        assert result.expected_files == 3
        assert result.uploaded_files == 3
        assert observed.count(0) == 1
        assert observed[-1] == 0

    @pytest.mark.asyncio
    async def test_incremental_registration(self):
        server = RecordingServer()
        root = MemoryDirectory.from_dict("root", {"a.txt": b"a", "b.txt": b"b"})
        result = await run_batch(server, [root], config=UploadConfig(count_first=False))
        assert result.expected_files == 2
        assert result.uploaded_files == 2

    @pytest.mark.asyncio
    async def test_shared_cursor_does_not_hang(self):
        # the counting pass drains the shared cursor, so the upload pass sees nothing
        root = SharedCursorDirectory("root", [MemoryFile("a.txt", b"a")])
        server = RecordingServer()
        result = await asyncio.wait_for(run_batch(server, [root]), 1)
        assert result.tasks == []
        assert result.expected_files == 0

    @pytest.mark.asyncio
    async def test_local_directory_upload(self, tmp_path):
        (tmp_path / "src" / "sub").mkdir(parents=True)
        (tmp_path / "src" / "one.txt").write_bytes(b"1")
        (tmp_path / "src" / "sub" / "two words.txt").write_bytes(b"22")

        server = RecordingServer()
        async with server.client() as client:
            async with UploadOrchestrator("https://host/dir", client=client) as orchestrator:
                result = await orchestrator.upload_paths([tmp_path / "src"]).wait()

        paths = sorted(r.url.raw_path for r in server.requests)
        assert paths == [b"/dir/src/one.txt", b"/dir/src/sub/two%20words.txt"]
        assert all("X-Last-Modified" in r.headers for r in server.requests)
        assert result.all_success is True

    @pytest.mark.asyncio
    async def test_cancel(self):
        server = RecordingServer(delay=10)
        root = MemoryDirectory.from_dict("root", {f"{i}.txt": b"x" for i in range(3)})
        cancelled = []

        async with server.client() as client:
            async with UploadOrchestrator(BASE_URL, client=client) as orchestrator:
                process = orchestrator.upload([root])
                process.on_task_cancel(cancelled.append)
                await process.start()
                while len(server.requests) < 3:
                    await asyncio.sleep(0.01)
                await process.cancel()
                result = await process.wait()

        assert process.state == ProcessState.CANCELLED
        assert result.cancelled_files == 3
        assert len(cancelled) == 3
        assert process.batch.completed is True
        assert process.batch.remaining_count == 0

    @pytest.mark.asyncio
    async def test_requires_context(self):
        orchestrator = UploadOrchestrator(BASE_URL)
        with pytest.raises(RuntimeError):
            orchestrator.upload([])

    @pytest.mark.asyncio
    async def test_owns_client(self):
        async with UploadOrchestrator("https://host/dir") as orchestrator:
            assert orchestrator.base_url == BASE_URL
            process = orchestrator.upload([])
            result = await process.wait()
        assert result.tasks == []
