from __future__ import annotations

from threading import Event

import httpx
from conftest import BrokenSource, ListSource, RecordingSink, make_entry

from feedrelay.engine.actions import Action, Contains, HttpFollow, ReadFilterAction, SinkAction, Take
from feedrelay.engine.read_filter import NewerThanRead, NotPresentInReadList
from feedrelay.engine.task import Task, TaskState, TaskStatus
from feedrelay.errors import StoreError
from feedrelay.infra.storage import MemoryStateStore


def _task(source, sink, read_filter=None, store=None, actions=None, **kwargs) -> Task:
    pipeline = list(actions or [])
    if read_filter is not None:
        pipeline.append(ReadFilterAction(read_filter))
    pipeline.append(SinkAction(sink))
    return Task("demo", source, pipeline, read_filter=read_filter, store=store, **kwargs)


def test_dedup_is_idempotent_across_runs() -> None:
    source = ListSource(["c", "b", "a"])
    sink = RecordingSink()
    task = _task(source, sink, NotPresentInReadList(), MemoryStateStore())
    for _ in range(3):
        assert task.run().status is TaskStatus.SUCCESS
    assert sorted(sink.titles) == ["Entry a", "Entry b", "Entry c"]

    source.ids = ["d", "c", "b"]
    task.run()
    assert sink.titles.count("Entry d") == 1
    assert len(sink.sent) == 4


def test_newer_than_read_delivers_oldest_first_and_advances() -> None:
    source = ListSource(["id5", "id4", "id3"])
    sink = RecordingSink()
    store = MemoryStateStore()
    store.save("demo", NewerThanRead("id4"))
    task = _task(source, sink, NewerThanRead(), store)

    result = task.run()
    assert result.delivered == 1
    assert sink.titles == ["Entry id5"]
    assert store.load("demo").last_read_id == "id5"

    source.ids = ["id7", "id6", "id5"]
    task.run()
    assert sink.titles == ["Entry id5", "Entry id6", "Entry id7"]


def test_partial_failure_is_retried_next_run() -> None:
    source = ListSource(["id6", "id5"])
    sink = RecordingSink(fail_titles=["Entry id5"])
    store = MemoryStateStore()
    task = _task(source, sink, NotPresentInReadList(), store)

    result = task.run()
    assert result.status is TaskStatus.SUCCESS
    assert result.delivered == 1
    assert result.dropped == 1
    assert store.load("demo").seen == {"id6"}
    assert source.marked == [["id6"]]

    sink.fail_titles.clear()
    task.run()
    assert sink.titles == ["Entry id6", "Entry id5"]
    assert store.load("demo").seen == {"id5", "id6"}


def test_failed_send_blocks_newer_than_read() -> None:
    source = ListSource(["id3", "id2", "id1"])
    sink = RecordingSink(fail_titles=["Entry id2"])
    read_filter = NewerThanRead()
    task = _task(source, sink, read_filter)
    task.run()
    assert sink.titles == ["Entry id1", "Entry id3"]
    assert read_filter.last_read_id == "id1"


def test_empty_batch_never_reaches_sink() -> None:
    source = ListSource(["b", "a"])
    sink = RecordingSink()
    task = _task(source, sink, actions=[Contains("title", "nothing matches")])
    result = task.run()
    assert result.status is TaskStatus.SUCCESS
    assert sink.sent == []


def test_fetch_error_keeps_state() -> None:
    store = MemoryStateStore()
    store.save("demo", NotPresentInReadList(["x"]))
    task = _task(BrokenSource(), RecordingSink(), NotPresentInReadList(), store)
    result = task.run()
    assert result.status is TaskStatus.FAILED
    assert result.error_kind == "fetch"
    assert store.load("demo").seen == {"x"}


def test_store_failure_is_logged_not_raised() -> None:
    class FailingStore(MemoryStateStore):
        def save(self, task_name, state) -> None:
            raise StoreError("disk full")

    sink = RecordingSink()
    task = _task(ListSource(["a"]), sink, NotPresentInReadList(), FailingStore())
    result = task.run()
    assert result.status is TaskStatus.SUCCESS
    assert sink.titles == ["Entry a"]


def test_unexpected_exception_stays_inside_task() -> None:
    class Explodes(Action):
        name = "explodes"

        def apply(self, entries, run):
            raise RuntimeError("boom")

    result = _task(ListSource(["a"]), RecordingSink(), actions=[Explodes()]).run()
    assert result.status is TaskStatus.FAILED
    assert result.error_kind == "internal"


def test_cancelled_before_fetch() -> None:
    source = ListSource(["a"])
    cancel = Event()
    cancel.set()
    result = _task(source, RecordingSink()).run(cancel)
    assert result.status is TaskStatus.CANCELLED
    assert source.calls == 0


def test_overlapping_firing_is_skipped() -> None:
    task = _task(ListSource(["a"]), RecordingSink())
    task._active.acquire()
    try:
        assert task.run().status is TaskStatus.SKIPPED
    finally:
        task._active.release()


def test_disabled_task_does_not_fetch() -> None:
    source = ListSource(["a"])
    task = _task(source, RecordingSink(), disabled=True)
    assert task.state is TaskState.DISABLED
    assert task.run().status is TaskStatus.DISABLED
    assert source.calls == 0


def test_without_sink_survivors_are_recorded() -> None:
    source = ListSource(["b", "a"])
    read_filter = NotPresentInReadList()
    task = Task("demo", source, [Take("newest", 1), ReadFilterAction(read_filter)], read_filter=read_filter)
    result = task.run()
    assert result.delivered == 1
    assert read_filter.seen == {"b"}


def test_stored_state_of_other_kind_is_ignored() -> None:
    store = MemoryStateStore()
    store.save("demo", NewerThanRead("a"))
    sink = RecordingSink()
    task = _task(ListSource(["a"]), sink, NotPresentInReadList(), store)
    task.run()
    assert sink.titles == ["Entry a"]


class LinkedSource(ListSource):
    def fetch(self):
        self.calls += 1
        return [make_entry(entry_id, title=f"Entry {entry_id}", link=f"https://example.com/{entry_id}") for entry_id in self.ids]


def test_follow_up_fetch_failure_keeps_entry_for_next_run() -> None:
    unavailable = {"/id5"}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path in unavailable:
            return httpx.Response(503)
        return httpx.Response(200, text="page")

    client = httpx.Client(transport=httpx.MockTransport(handler))
    store = MemoryStateStore()
    store.save("demo", NewerThanRead("id4"))
    sink = RecordingSink()
    task = _task(LinkedSource(["id6", "id5", "id4"]), sink, NewerThanRead(), store, actions=[HttpFollow(client=client)])

    result = task.run()
    assert result.status is TaskStatus.FAILED
    assert result.error_kind == "fetch"
    assert sink.sent == []
    assert store.load("demo").last_read_id == "id4"

    unavailable.clear()
    assert task.run().status is TaskStatus.SUCCESS
    assert sink.titles == ["Entry id5", "Entry id6"]
    assert store.load("demo").last_read_id == "id6"


def test_duplicate_ids_in_one_batch_are_sent_once() -> None:
    class RepeatingSource(ListSource):
        def fetch(self):
            return [make_entry("b", title="first b"), make_entry("a"), make_entry("b", title="second b")]

    sink = RecordingSink()
    result = _task(RepeatingSource(), sink).run()
    assert result.delivered == 2
    assert sink.titles == ["Entry a", "first b"]
