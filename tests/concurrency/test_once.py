import threading
import time

import pytest

from netdra.concurrency import Once


class TestOnce:
    """Tests for Once class."""

    def test_init(self):
        """Test that Once starts in uninitialized state."""
        once = Once()
        assert not once.done
        assert once.result is None
        assert once.exception is None

    def test_runs_once(self):
        """Test that the function is only executed once."""
        once = Once()
        call_count = 0

        def increment():
            nonlocal call_count
            call_count += 1
            return call_count

        assert once.run(increment) == 1
        assert once.run(increment) == 1
        assert call_count == 1
        assert once.done
        assert once.result == 1

    def test_concurrent_calls(self):
        """Test that concurrent callers wait for the single execution."""
        once = Once()
        execution_order = []
        results = []

        def slow():
            execution_order.append("start")
            time.sleep(0.05)
            execution_order.append("end")
            return "done"

        threads = [threading.Thread(target=lambda: results.append(once.run(slow))) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert execution_order == ["start", "end"]
        assert results == ["done", "done", "done"]

    def test_exception_is_cached(self):
        """Test that a raised exception is re-raised on later calls."""
        once = Once()
        call_count = 0

        def fail():
            nonlocal call_count
            call_count += 1
            raise ValueError("nope")

        with pytest.raises(ValueError):
            once.run(fail)
        with pytest.raises(ValueError):
            once.run(fail)

        assert call_count == 1
        assert isinstance(once.exception, ValueError)
        assert once.result is None

    def test_reset(self):
        """Test that reset allows the function to run again."""
        once = Once()
        once.run(lambda: 1)
        once.reset()

        assert not once.done
        assert once.run(lambda: 2) == 2
