"""
Tests for transactions, spans and task-local trace context.
"""

import asyncio
import threading

import pytest

from sentrylite.tracing.context import get_current_span, get_current_transaction
from sentrylite.tracing.engine import finish_transaction, start_transaction
from sentrylite.types import Span, Transaction


# =============================================================================
# Scoped usage
# =============================================================================

class TestScopedTransactions:
    """Test transactions and spans used as context managers."""

    def test_root_transaction(self, captured):
        """Test that a finished sampled transaction is enqueued once."""
        with start_transaction(name="checkout", op="http.server") as transaction:
            assert isinstance(transaction, Transaction)
            assert get_current_transaction() is transaction
            assert get_current_span() is transaction.root_span

        assert captured == [transaction]
        assert transaction.is_finished
        assert transaction.sampled
        assert transaction.timestamp >= transaction.start_timestamp
        assert get_current_transaction() is None

    def test_nested_spans(self, captured):
        """Test parent links and completion order of nested spans."""
        with start_transaction(name="checkout", op="http.server") as transaction:
            with start_transaction(op="db.query") as outer:
                with start_transaction(op="db.fetch") as inner:
                    assert get_current_span() is inner
                assert get_current_span() is outer

        assert isinstance(outer, Span)
        assert outer.parent_span_id == transaction.span_id
        assert inner.parent_span_id == outer.span_id
        assert transaction.spans == [inner, outer]
        assert inner.trace_id == outer.trace_id == transaction.trace_id
        assert captured == [transaction]

    def test_sibling_spans(self, captured):
        """Test that siblings share the root as parent."""
        with start_transaction(name="batch", op="task") as transaction:
            with start_transaction(op="step.one") as first:
                pass
            with start_transaction(op="step.two") as second:
                pass

        assert first.parent_span_id == transaction.span_id
        assert second.parent_span_id == transaction.span_id
        assert transaction.spans == [first, second]

    def test_child_description_defaults_to_name(self, captured):
        with start_transaction(name="root", op="task"):
            with start_transaction(name="load rows", op="db") as span:
                pass

        assert span.description == "load rows"

    def test_exception_marks_status(self, captured):
        """Test that an error inside the scope is tagged and still reported."""
        with pytest.raises(RuntimeError):
            with start_transaction(name="failing", op="task") as transaction:
                with start_transaction(op="inner") as span:
                    raise RuntimeError("boom")

        assert span.tags["status"] == "internal_error"
        assert transaction.tags["status"] == "internal_error"
        assert captured == [transaction]
        assert get_current_transaction() is None

    def test_unsampled_transaction_is_not_enqueued(self, hub, captured):
        """Test that an unsampled transaction is dropped at finish."""
        from sentrylite.tracing.sampling import NoSamples

        hub.traces_sampler = NoSamples()

        with start_transaction(name="quiet", op="task") as transaction:
            with start_transaction(op="child") as span:
                pass

        assert not transaction.sampled
        assert not span.sampled
        assert span.is_finished
        assert captured == []

    def test_sampler_runs_once_per_transaction(self, hub, captured):
        """Test that children inherit the root decision."""
        from sentrylite.tracing.sampling import PredicateSampler

        seen = []

        def predicate(context):
            seen.append((context.name, context.op))
            return True

        hub.traces_sampler = PredicateSampler(predicate)

        with start_transaction(name="root", op="http.server"):
            with start_transaction(op="a"):
                pass
            with start_transaction(op="b"):
                pass

        assert seen == [("root", "http.server")]

    def test_finished_span_ignores_tags(self, captured):
        with start_transaction(name="root", op="task") as transaction:
            with start_transaction(op="child", tags={"k": "v"}) as span:
                pass
            span.set_tag("late", "value")

        assert span.tags == {"k": "v"}
        transaction.set_tag("after", "send")
        assert "after" not in transaction.tags

    def test_continue_trace(self, captured):
        """Test continuing a remote trace."""
        trace_id = "0123456789abcdef0123456789abcdef"

        with start_transaction(
            name="remote",
            op="queue.task",
            trace_id=trace_id,
            parent_span_id="fedcba9876543210",
        ) as transaction:
            with start_transaction(op="child") as span:
                pass

        assert transaction.trace_id == trace_id
        assert transaction.parent_span_id == "fedcba9876543210"
        assert span.trace_id == trace_id


# =============================================================================
# Unscoped usage
# =============================================================================

class TestUnscopedTransactions:
    """Test start_transaction()/finish_transaction() without ``with``."""

    def test_start_and_finish(self, captured):
        transaction = start_transaction(name="job", op="task")

        # Not bound to the calling task
        assert get_current_transaction() is None
        assert not transaction.is_finished

        assert finish_transaction(transaction) is True
        assert captured == [transaction]

    def test_double_finish(self, captured):
        """Test that a second finish is ignored."""
        transaction = start_transaction(name="job", op="task")

        assert finish_transaction(transaction) is True
        first_timestamp = transaction.timestamp

        assert finish_transaction(transaction) is False
        assert transaction.timestamp == first_timestamp
        assert captured == [transaction]

    def test_finish_never_started(self, captured):
        """Test that finishing a hand-made span is ignored."""
        span = Span(op="orphan")

        assert finish_transaction(span) is False
        assert span.timestamp is None
        assert captured == []

    def test_child_finished_after_transaction(self, captured):
        """Test that a late child does not alter the sent transaction."""
        with start_transaction(name="root", op="task") as transaction:
            late = start_transaction(op="late")

        assert transaction.child_spans() == [late]
        assert finish_transaction(late) is False
        assert late.timestamp is None
        assert transaction.spans == []

    def test_unscoped_child(self, captured):
        """Test a child span finished explicitly inside a scope."""
        with start_transaction(name="root", op="task") as transaction:
            span = start_transaction(op="manual")
            assert get_current_span() is transaction.root_span
            assert finish_transaction(span) is True

        assert transaction.spans == [span]
        assert span.parent_span_id == transaction.span_id


# =============================================================================
# Propagation
# =============================================================================

class TestPropagation:
    """Test how the active transaction follows threads and tasks."""

    def test_threads_do_not_inherit(self, captured):
        """Test that a new thread starts without a transaction."""
        seen = []

        with start_transaction(name="root", op="task"):
            thread = threading.Thread(target=lambda: seen.append(get_current_transaction()))
            thread.start()
            thread.join()

        assert seen == [None]

    def test_thread_handoff(self, captured):
        """Test attaching a transaction to a worker thread explicitly."""
        from sentrylite.tracing.context import set_task_transaction

        transaction = start_transaction(name="job", op="task")
        spans = []

        def work():
            set_task_transaction(transaction)
            with start_transaction(op="thread.work") as span:
                spans.append(span)

        thread = threading.Thread(target=work)
        thread.start()
        thread.join()

        finish_transaction(transaction)

        assert transaction.spans == spans
        assert spans[0].parent_span_id == transaction.span_id
        assert captured == [transaction]

    def test_set_task_transaction_none_clears(self, captured):
        from sentrylite.tracing.context import set_task_transaction

        transaction = start_transaction(name="job", op="task")
        set_task_transaction(transaction)
        assert get_current_transaction() is transaction

        set_task_transaction(None)
        assert get_current_transaction() is None
        assert get_current_span() is None

    def test_run_with_transaction(self, captured):
        """Test binding a transaction for the duration of one call."""
        from sentrylite.tracing.context import run_with_transaction

        transaction = start_transaction(name="job", op="task")

        span = run_with_transaction(transaction, lambda: start_transaction(op="call"))

        assert span.parent_span_id == transaction.span_id
        assert get_current_transaction() is None

    def test_copy_context_to_task(self, captured):
        """Test carrying the binding into a coroutine run on another loop."""
        from sentrylite.tracing.context import copy_context_to_task, set_task_transaction

        transaction = start_transaction(name="job", op="task")
        set_task_transaction(transaction)

        async def current():
            return get_current_transaction()

        results = []

        def run_elsewhere():
            results.append(asyncio.run(current()))
            results.append(asyncio.run(copy_context_to_task(current())))

        thread = threading.Thread(target=run_elsewhere)
        thread.start()
        thread.join()

        assert results == [None, transaction]

    @pytest.mark.asyncio
    async def test_async_scope(self, captured):
        """Test async with on transactions and spans."""
        async with start_transaction(name="async", op="task") as transaction:
            async with start_transaction(op="await.io") as span:
                await asyncio.sleep(0)
                assert get_current_span() is span

        assert transaction.spans == [span]
        assert captured == [transaction]

    @pytest.mark.asyncio
    async def test_concurrent_tasks_are_isolated(self, captured):
        """Test that interleaved tasks keep separate transactions."""

        async def handle(name):
            async with start_transaction(name=name, op="task") as transaction:
                await asyncio.sleep(0)
                async with start_transaction(op=f"{name}.step"):
                    await asyncio.sleep(0)
                return transaction

        first, second = await asyncio.gather(handle("first"), handle("second"))

        assert first is not second
        assert [s.op for s in first.spans] == ["first.step"]
        assert [s.op for s in second.spans] == ["second.step"]
        assert len(captured) == 2

    @pytest.mark.asyncio
    async def test_tasks_inherit_creator_context(self, captured):
        """Test that a task created inside a scope adds spans to it."""

        async def step():
            async with start_transaction(op="task.step") as span:
                await asyncio.sleep(0)
            return span

        async with start_transaction(name="parent", op="task") as transaction:
            span = await asyncio.create_task(step())

        assert span.parent_span_id == transaction.span_id
        assert transaction.spans == [span]


# =============================================================================
# Decorator
# =============================================================================

class TestTraced:
    """Test the traced decorator."""

    def test_sync_function(self, captured):
        from sentrylite.tracing.engine import traced

        @traced(op="task")
        def compute(x):
            return x * 2

        assert compute(21) == 42
        assert len(captured) == 1
        assert captured[0].op == "task"
        assert captured[0].name.endswith("compute")

    def test_nested_becomes_span(self, captured):
        from sentrylite.tracing.engine import traced

        @traced(op="db", name="load")
        def load():
            return get_current_span()

        with start_transaction(name="root", op="task") as transaction:
            span = load()

        assert transaction.spans == [span]
        assert span.description == "load"

    @pytest.mark.asyncio
    async def test_async_function(self, captured):
        from sentrylite.tracing.engine import traced

        @traced(op="async.task")
        async def fetch():
            await asyncio.sleep(0)
            return "done"

        assert await fetch() == "done"
        assert [t.op for t in captured] == ["async.task"]


# =============================================================================
# Uninitialized SDK
# =============================================================================

class TestWithoutInit:
    """Test that tracing is inert before init()."""

    def test_nothing_is_sampled(self, hub):
        with start_transaction(name="root", op="task") as transaction:
            with start_transaction(op="child"):
                pass

        assert not transaction.sampled
        assert hub.worker is None
        assert hub.capture_event(transaction) is None
