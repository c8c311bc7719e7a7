# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for checkpoints and the memory, SQLite and JSON file backends."""

import json
import time

import pytest

from loom.core.errors import CheckpointError
from loom.graph.checkpoint import (
    CHECKPOINT_VERSION,
    Checkpoint,
    CheckpointerProtocol,
    Interrupt,
    InterruptKind,
    MemoryCheckpointer,
    RunStatus,
)
from loom.graph.checkpointer import JSONFileCheckpointer, SQLiteCheckpointer, create_checkpointer
from loom.graph.compiler import StateGraph
from loom.graph.executor import Suspend
from loom.graph.runtime import GraphRuntime


def _checkpoint(thread_id="t1", step=0, **kwargs):
    return Checkpoint(
        thread_id=thread_id,
        graph_name="CounterState",
        current_node="a",
        state={"count": step},
        step=step,
        **kwargs,
    )


def _approval_graph(schema):
    def approve(state, ctx):
        if not ctx.resumed:
            return Suspend("approve?")
        return {"answer": ctx.resume_value, "trail": ["approve"]}

    def finish(state, ctx):
        return {"trail": ["finish"]}

    graph = StateGraph(schema)
    graph.add_node("approve", approve)
    graph.add_node("finish", finish)
    graph.add_edge("approve", "finish")
    graph.set_entry_point("approve")
    graph.set_finish_point("finish")
    return graph.compile()


@pytest.fixture(params=["sqlite", "json"])
def durable_factory(request, tmp_path):
    """Factory opening a fresh durable checkpointer on shared storage."""
    opened = []

    def factory():
        if request.param == "sqlite":
            checkpointer = SQLiteCheckpointer(tmp_path / "checkpoints.db")
        else:
            checkpointer = JSONFileCheckpointer(tmp_path / "checkpoints")
        opened.append(checkpointer)
        return checkpointer

    yield factory
    for checkpointer in opened:
        if isinstance(checkpointer, SQLiteCheckpointer):
            checkpointer.close()


class TestCheckpoint:
    """Tests for Checkpoint serialisation."""

    def test_to_dict_from_dict(self):
        original = _checkpoint(
            status=RunStatus.PAUSED,
            pending_interrupt=Interrupt("a", prompt={"q": 1}, kind=InterruptKind.BEFORE),
            node_history=["x"],
            metadata={"recursion_limit": 5},
        )
        restored = Checkpoint.from_dict(json.loads(json.dumps(original.to_dict())))
        assert restored == original

    def test_unknown_version_rejected(self):
        data = _checkpoint().to_dict()
        data["version"] = CHECKPOINT_VERSION + 1
        with pytest.raises(CheckpointError, match="version"):
            Checkpoint.from_dict(data)

    def test_missing_field_rejected(self):
        data = _checkpoint().to_dict()
        del data["current_node"]
        with pytest.raises(CheckpointError):
            Checkpoint.from_dict(data)

    def test_non_object_rejected(self):
        with pytest.raises(CheckpointError):
            Checkpoint.from_dict(["not", "a", "checkpoint"])

    def test_successor_has_new_identity(self):
        original = _checkpoint()
        successor = original.successor(status=RunStatus.FAILED)
        assert successor.checkpoint_id != original.checkpoint_id
        assert successor.status == RunStatus.FAILED
        assert successor.state == original.state
        assert original.status == RunStatus.RUNNING


class TestMemoryCheckpointer:
    """Tests for MemoryCheckpointer."""

    @pytest.mark.asyncio
    async def test_save_load_list(self):
        store = MemoryCheckpointer()
        for step in range(3):
            await store.save(_checkpoint(step=step))
        assert (await store.load("t1")).step == 2
        assert [c.step for c in await store.list("t1")] == [0, 1, 2]
        assert await store.load("other") is None
        assert store.threads() == ["t1"]

    @pytest.mark.asyncio
    async def test_copies_in_and_out(self):
        store = MemoryCheckpointer()
        checkpoint = _checkpoint()
        await store.save(checkpoint)
        checkpoint.state["count"] = 99
        loaded = await store.load("t1")
        loaded.state["count"] = 42
        assert (await store.load("t1")).state == {"count": 0}

    def test_satisfies_protocol(self, tmp_path):
        assert isinstance(MemoryCheckpointer(), CheckpointerProtocol)
        assert isinstance(JSONFileCheckpointer(tmp_path), CheckpointerProtocol)
        assert isinstance(SQLiteCheckpointer(tmp_path / "c.db"), CheckpointerProtocol)


class TestDurableCheckpointers:
    """Behaviour shared by the SQLite and JSON file backends."""

    @pytest.mark.asyncio
    async def test_round_trip(self, durable_factory):
        store = durable_factory()
        for step in range(3):
            await store.save(_checkpoint(step=step))
        latest = await store.load("t1")
        assert latest.step == 2
        assert latest.state == {"count": 2}
        assert [c.step for c in await store.list("t1")] == [0, 1, 2]
        assert await store.load("missing") is None
        assert await store.list("missing") == []

    @pytest.mark.asyncio
    async def test_delete_thread(self, durable_factory):
        store = durable_factory()
        await store.save(_checkpoint("t1"))
        await store.save(_checkpoint("t1", step=1))
        await store.save(_checkpoint("t2"))
        assert await store.delete_thread("t1") == 2
        assert await store.load("t1") is None
        assert await store.load("t2") is not None

    @pytest.mark.asyncio
    async def test_non_json_state_rejected(self, durable_factory):
        store = durable_factory()
        checkpoint = _checkpoint()
        checkpoint.state["handle"] = object()
        with pytest.raises(CheckpointError):
            await store.save(checkpoint)
        assert await store.load("t1") is None

    @pytest.mark.asyncio
    async def test_resume_from_new_runtime(self, durable_factory, counter_schema):
        """A paused run survives the runtime that started it."""
        definition = _approval_graph(counter_schema)
        paused = await GraphRuntime(definition, checkpointer=durable_factory()).start()
        assert paused.paused

        fresh = GraphRuntime(definition, checkpointer=durable_factory())
        assert (await fresh.get_checkpoint(paused.thread_id)).status == RunStatus.PAUSED

        done = await fresh.resume(paused.thread_id, "yes")
        assert done.completed
        assert done.state == {"count": 0, "trail": ["approve", "finish"], "answer": "yes"}

    @pytest.mark.asyncio
    async def test_failed_run_record_persisted(self, durable_factory, counter_schema):
        def boom(state, ctx):
            raise RuntimeError("kaput")

        graph = StateGraph(counter_schema).add_node("boom", boom)
        definition = graph.set_entry_point("boom").set_finish_point("boom").compile()
        outcome = await GraphRuntime(definition, checkpointer=durable_factory()).start()

        record = await durable_factory().load(outcome.thread_id)
        assert record.status == RunStatus.FAILED
        assert record.error["type"] == "NodeExecutionError"


class TestSQLiteCheckpointer:
    """SQLite-specific behaviour."""

    @pytest.mark.asyncio
    async def test_cleanup_keeps_recent(self, tmp_path):
        store = SQLiteCheckpointer(tmp_path / "c.db")
        for step in range(5):
            await store.save(_checkpoint(step=step))

        assert await store.cleanup(max_per_thread=2) == 3
        assert [c.step for c in await store.list("t1")] == [3, 4]
        store.close()

    @pytest.mark.asyncio
    async def test_cleanup_always_keeps_latest(self, tmp_path):
        store = SQLiteCheckpointer(tmp_path / "c.db")
        old = time.time() - 7200
        for step in range(3):
            await store.save(_checkpoint(step=step, timestamp=old))

        assert await store.cleanup(max_age_hours=1) == 2
        assert [c.step for c in await store.list("t1")] == [2]
        store.close()

    @pytest.mark.asyncio
    async def test_version_mismatch_on_load(self, tmp_path):
        store = SQLiteCheckpointer(tmp_path / "c.db")
        await store.save(_checkpoint())
        conn = store._get_connection()
        with conn:
            conn.execute("UPDATE checkpoints SET data = ?", (json.dumps({"version": 99}),))
        with pytest.raises(CheckpointError, match="version"):
            await store.load("t1")
        store.close()

    @pytest.mark.asyncio
    async def test_corrupt_payload(self, tmp_path):
        store = SQLiteCheckpointer(tmp_path / "c.db")
        await store.save(_checkpoint())
        conn = store._get_connection()
        with conn:
            conn.execute("UPDATE checkpoints SET data = ?", ("{not json",))
        with pytest.raises(CheckpointError):
            await store.load("t1")
        store.close()


class TestJSONFileCheckpointer:
    """JSON file-specific behaviour."""

    @pytest.mark.asyncio
    async def test_files_ordered_by_sequence(self, tmp_path):
        store = JSONFileCheckpointer(tmp_path)
        for step in range(3):
            await store.save(_checkpoint(step=step))
        names = sorted(path.name for path in (tmp_path / "t1").iterdir())
        assert [name[:8] for name in names] == ["00000000", "00000001", "00000002"]
        assert not list((tmp_path / "t1").glob("*.tmp"))

    @pytest.mark.asyncio
    async def test_invalid_thread_id(self, tmp_path):
        store = JSONFileCheckpointer(tmp_path)
        with pytest.raises(CheckpointError):
            await store.save(_checkpoint(thread_id="../escape"))

    @pytest.mark.asyncio
    async def test_version_mismatch_on_load(self, tmp_path):
        store = JSONFileCheckpointer(tmp_path)
        await store.save(_checkpoint())
        (path,) = (tmp_path / "t1").glob("*.json")
        data = json.loads(path.read_text())
        data["version"] = 99
        path.write_text(json.dumps(data))
        with pytest.raises(CheckpointError, match="version"):
            await store.load("t1")

    @pytest.mark.asyncio
    async def test_delete_removes_directory(self, tmp_path):
        store = JSONFileCheckpointer(tmp_path)
        await store.save(_checkpoint())
        assert await store.delete_thread("t1") == 1
        assert not (tmp_path / "t1").exists()


class TestCreateCheckpointer:
    """Tests for create_checkpointer."""

    def test_backends(self, tmp_path):
        assert isinstance(create_checkpointer("memory"), MemoryCheckpointer)
        assert isinstance(create_checkpointer("sqlite", tmp_path / "c.db"), SQLiteCheckpointer)
        assert isinstance(create_checkpointer("JSON", tmp_path / "json"), JSONFileCheckpointer)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown checkpointer backend"):
            create_checkpointer("redis")

    @pytest.mark.asyncio
    async def test_runtime_uses_configured_backend(self, tmp_path, counter_schema):
        from loom.config.settings import LoomSettings

        settings = LoomSettings(checkpointer="json", checkpoint_path=str(tmp_path / "runs"))
        runtime = GraphRuntime(_approval_graph(counter_schema), settings=settings)
        assert isinstance(runtime.checkpointer, JSONFileCheckpointer)

        paused = await runtime.start()
        assert (tmp_path / "runs" / paused.thread_id).is_dir()
