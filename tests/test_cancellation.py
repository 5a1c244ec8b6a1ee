import os
import signal
import threading

import pytest

from symbolicate.cancellation import (
    CancellationController,
    CancellationToken,
    SymbolicationCancelled,
)


def test_token_is_one_way() -> None:
    token = CancellationToken()
    assert not token.cancelled
    token.raise_if_cancelled()

    token.cancel()
    token.cancel()

    assert token.cancelled
    with pytest.raises(SymbolicationCancelled):
        token.raise_if_cancelled()


def test_sigint_sets_token_and_handler_is_restored() -> None:
    previous = signal.getsignal(signal.SIGINT)

    with CancellationController() as token:
        assert signal.getsignal(signal.SIGINT) is not previous
        os.kill(os.getpid(), signal.SIGINT)
        assert token.cancelled

    assert signal.getsignal(signal.SIGINT) is previous


def test_controller_uses_given_token() -> None:
    token = CancellationToken()

    with CancellationController(token) as entered:
        assert entered is token


def test_controller_off_main_thread_leaves_handlers_alone() -> None:
    previous = signal.getsignal(signal.SIGINT)
    seen = []

    def worker() -> None:
        with CancellationController() as token:
            seen.append(signal.getsignal(signal.SIGINT))
            token.cancel()
            seen.append(token.cancelled)

    t = threading.Thread(target=worker)
    t.start()
    t.join()

    assert seen == [previous, True]
