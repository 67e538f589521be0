import threading
import pytest

from transferpilot.core.cancellation import CancellationToken
from transferpilot.core.exceptions import CancellationError


def test_token_starts_clear():
    token = CancellationToken()
    assert not token.cancelled
    token.raise_if_cancelled()
    assert token.wait(timeout=0) is False


def test_cancel_is_idempotent():
    token = CancellationToken()
    token.cancel()
    token.cancel()
    assert token.cancelled
    with pytest.raises(CancellationError, match="stopped by user"):
        token.raise_if_cancelled("stopped by user")


def test_cancel_from_other_thread():
    token = CancellationToken()
    worker = threading.Thread(target=token.cancel)
    worker.start()
    assert token.wait(timeout=5)
    worker.join()
