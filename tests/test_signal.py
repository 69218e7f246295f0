"""Tests for completion signals and invocation results."""

import asyncio
import threading

import pytest

from wirestub.error import WirestubError
from wirestub.signal import CompletionSignal, Failure, InvocationResult, Value


class TestInvocationResult:
    """Tests for Value and Failure."""

    def test_value_unwraps(self) -> None:
        """Test a Value unwraps to its value."""
        assert Value(42).unwrap() == 42

    def test_failure_raises(self) -> None:
        """Test a Failure raises its own error object."""
        error = WirestubError.transport("Reset")
        with pytest.raises(WirestubError) as exc_info:
            Failure(error).unwrap()
        assert exc_info.value is error

    def test_capture_value(self) -> None:
        """Test capture wraps a return value."""
        assert InvocationResult.capture(lambda a, b: a + b, 1, 2) == Value(3)

    def test_capture_failure(self) -> None:
        """Test capture wraps a raised exception."""

        def boom() -> None:
            raise ValueError("boom")

        result = InvocationResult.capture(boom)
        assert isinstance(result, Failure)
        assert isinstance(result.error, ValueError)

    def test_base_class_is_abstract(self) -> None:
        """Test only Value and Failure can be instantiated."""
        with pytest.raises(TypeError):
            InvocationResult()  # type: ignore[abstract]


class TestCompletionSignal:
    """Tests for CompletionSignal."""

    @pytest.mark.asyncio
    async def test_resolve_on_loop(self) -> None:
        """Test resolving on the caller's loop."""
        signal = CompletionSignal()
        assert signal.resolve(Value("done"))
        assert await signal == "done"

    @pytest.mark.asyncio
    async def test_failure_is_raised(self) -> None:
        """Test a Failure is raised to the awaiting caller."""
        signal = CompletionSignal()
        error = WirestubError.decode("Bad JSON")
        signal.resolve(Failure(error))
        with pytest.raises(WirestubError) as exc_info:
            await signal
        assert exc_info.value == error

    @pytest.mark.asyncio
    async def test_resolve_from_thread(self) -> None:
        """Test resolving from another thread resumes the caller."""
        signal = CompletionSignal()
        threading.Thread(target=signal.resolve, args=(Value(7),)).start()
        assert await asyncio.wait_for(signal, timeout=5) == 7

    @pytest.mark.asyncio
    async def test_second_resolution_is_rejected(self) -> None:
        """Test the first outcome is never overwritten."""
        signal = CompletionSignal()
        assert signal.resolve(Value(1))
        assert not signal.resolve(Value(2))
        assert not signal.resolve(Failure(RuntimeError("late")))
        assert signal.result == Value(1)
        assert await signal == 1

    @pytest.mark.asyncio
    async def test_racing_threads_resolve_once(self) -> None:
        """Of many concurrent resolutions exactly one wins."""
        signal = CompletionSignal()
        barrier = threading.Barrier(16)
        wins: list[bool] = []
        lock = threading.Lock()

        def race(n: int) -> None:
            barrier.wait()
            won = signal.resolve(Value(n))
            with lock:
                wins.append(won)

        threads = [threading.Thread(target=race, args=(n,)) for n in range(16)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert wins.count(True) == 1
        value = await signal
        assert signal.result == Value(value)

    @pytest.mark.asyncio
    async def test_cancel_discards_later_resolution(self) -> None:
        """Test a cancelled signal rejects outcomes."""
        signal = CompletionSignal()
        assert signal.cancel()
        assert signal.cancelled
        assert not signal.resolve(Value(1))
        assert signal.result is None

    @pytest.mark.asyncio
    async def test_cancel_after_resolution_is_noop(self) -> None:
        """Test cancelling a resolved signal keeps its outcome."""
        signal = CompletionSignal()
        signal.resolve(Value(1))
        assert not signal.cancel()
        assert not signal.cancelled
        assert await signal == 1

    @pytest.mark.asyncio
    async def test_repr(self) -> None:
        """Test repr shows the signal state."""
        signal = CompletionSignal()
        assert repr(signal) == "CompletionSignal(pending)"
        signal.resolve(Value(1))
        assert "resolved" in repr(signal)
