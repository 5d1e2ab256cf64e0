"""
Unit tests for pending approval registries.
"""

import asyncio

import pytest

from relay_library.concurrency import ApprovalContext
from relay_library.concurrency import ApprovalKind
from relay_library.concurrency import ApprovalRegistries
from relay_library.concurrency import ApprovalSignal
from relay_library.concurrency import PendingApprovalRegistry
from relay_library.errors import DuplicateApprovalError


@pytest.fixture
def registry() -> PendingApprovalRegistry:
    return PendingApprovalRegistry(ApprovalKind.TOOL)


@pytest.mark.unit
class TestPendingApprovalRegistry:
    """Test register, resolve and abort semantics."""

    @pytest.mark.asyncio
    async def test_resolve_completes_future(self, registry: PendingApprovalRegistry) -> None:
        """Test the awaiting side receives the answer and the entry is removed."""
        future = registry.register("a1", ApprovalContext("C1"), {"tool": "Bash"})

        assert registry.resolve("a1", {"allow": True}) is True

        assert await future == {"allow": True}
        assert "a1" not in registry
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_second_resolve_is_noop(self, registry: PendingApprovalRegistry) -> None:
        """Test a duplicate click resolves nothing and keeps the first answer."""
        future = registry.register("a1", ApprovalContext("C1"))

        assert registry.resolve("a1", "allow") is True
        assert registry.resolve("a1", "deny") is False

        assert await future == "allow"

    @pytest.mark.asyncio
    async def test_resolve_unknown_returns_false(self, registry: PendingApprovalRegistry) -> None:
        """Test resolving an id that never existed returns False."""
        assert registry.resolve("missing", True) is False

    @pytest.mark.asyncio
    async def test_duplicate_register_rejected(self, registry: PendingApprovalRegistry) -> None:
        """Test an id still pending cannot be registered again."""
        registry.register("a1", ApprovalContext("C1"))

        with pytest.raises(DuplicateApprovalError):
            registry.register("a1", ApprovalContext("C1"))

    @pytest.mark.asyncio
    async def test_id_reusable_after_resolution(self, registry: PendingApprovalRegistry) -> None:
        """Test a resolved id may be registered again."""
        registry.register("a1", ApprovalContext("C1"))
        registry.resolve("a1", True)

        future = registry.register("a1", ApprovalContext("C1"))

        assert not future.done()

    @pytest.mark.asyncio
    async def test_abort_resolves_with_sentinel(self, registry: PendingApprovalRegistry) -> None:
        """Test abort hands the waiter the aborted signal."""
        future = registry.register("a1", ApprovalContext("C1"))

        assert registry.abort("a1") is True

        assert await future is ApprovalSignal.ABORTED

    @pytest.mark.asyncio
    async def test_abort_conversation_only_touches_its_key(self, registry: PendingApprovalRegistry) -> None:
        """Test conversation abort leaves other conversations pending."""
        mine = registry.register("a1", ApprovalContext("C1"))
        also_mine = registry.register("a2", ApprovalContext("C1"))
        other = registry.register("b1", ApprovalContext("C2"))

        assert registry.abort_conversation("C1") == 2

        assert await mine is ApprovalSignal.ABORTED
        assert await also_mine is ApprovalSignal.ABORTED
        assert not other.done()
        assert [entry.id for entry in registry.list_pending()] == ["b1"]

    @pytest.mark.asyncio
    async def test_wait_expires(self, registry: PendingApprovalRegistry) -> None:
        """Test an unanswered approval resolves with the expired signal."""
        registry.register("a1", ApprovalContext("C1"))

        value = await registry.wait("a1", timeout=0.01)

        assert value is ApprovalSignal.EXPIRED
        assert "a1" not in registry

    @pytest.mark.asyncio
    async def test_wait_returns_answer(self, registry: PendingApprovalRegistry) -> None:
        """Test wait returns an answer given while waiting."""
        registry.register("a1", ApprovalContext("C1"))
        asyncio.get_running_loop().call_soon(registry.resolve, "a1", "yes")

        assert await registry.wait("a1", timeout=5) == "yes"

    @pytest.mark.asyncio
    async def test_wait_unknown_raises(self, registry: PendingApprovalRegistry) -> None:
        """Test waiting on an id that is not pending raises KeyError."""
        with pytest.raises(KeyError):
            await registry.wait("missing")

    @pytest.mark.asyncio
    async def test_clear_aborts_everything(self, registry: PendingApprovalRegistry) -> None:
        """Test clear resolves every pending future with the aborted signal."""
        future = registry.register("a1", ApprovalContext("C1"))

        registry.clear()

        assert await future is ApprovalSignal.ABORTED
        assert len(registry) == 0


@pytest.mark.unit
class TestCleanupHook:
    """Test the resolution cleanup hook."""

    @pytest.mark.asyncio
    async def test_hook_runs_with_message_ts(self) -> None:
        """Test an async hook runs once with the entry and value."""
        calls = []

        async def on_resolved(entry, value) -> None:
            calls.append((entry.id, value))

        registry = PendingApprovalRegistry(ApprovalKind.PLAN, on_resolved)
        registry.register("p1", ApprovalContext("C1", message_ts="111.222"))

        registry.resolve("p1", "approve")
        registry.resolve("p1", "approve")
        await asyncio.sleep(0)

        assert calls == [("p1", "approve")]

    @pytest.mark.asyncio
    async def test_hook_skipped_without_message_ts(self) -> None:
        """Test no cleanup runs when there is no prompt message to update."""
        calls = []
        registry = PendingApprovalRegistry(ApprovalKind.PLAN, lambda entry, value: calls.append(value))
        registry.register("p1", ApprovalContext("C1"))

        registry.resolve("p1", "approve")

        assert calls == []

    @pytest.mark.asyncio
    async def test_failing_hook_does_not_break_resolution(self) -> None:
        """Test a raising hook is logged and the waiter still gets its answer."""

        def on_resolved(entry, value) -> None:
            raise RuntimeError("chat API down")

        registry = PendingApprovalRegistry(ApprovalKind.QUESTION, on_resolved)
        future = registry.register("q1", ApprovalContext("C1", message_ts="1.2"))

        assert registry.resolve("q1", {"answer": "yes"}) is True
        assert await future == {"answer": "yes"}


@pytest.mark.unit
class TestApprovalRegistries:
    """Test the three-table grouping."""

    @pytest.mark.asyncio
    async def test_tables_are_independent(self) -> None:
        """Test the same id may be pending in different tables."""
        registries = ApprovalRegistries()
        registries.tools.register("x", ApprovalContext("C1"))
        registries.plans.register("x", ApprovalContext("C1"))

        assert registries.for_kind(ApprovalKind.TOOL).resolve("x", True)
        assert "x" in registries.plans

    @pytest.mark.asyncio
    async def test_abort_conversation_across_tables(self) -> None:
        """Test aborting a conversation covers all three tables."""
        registries = ApprovalRegistries()
        registries.tools.register("t", ApprovalContext("C1"))
        registries.plans.register("p", ApprovalContext("C1"))
        registries.questions.register("q", ApprovalContext("C2"))

        assert registries.abort_conversation("C1") == 2
        assert len(registries.questions) == 1
