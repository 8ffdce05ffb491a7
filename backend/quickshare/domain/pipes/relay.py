"""
Pipe Relay

Named rendezvous points relaying one streamed body from a sender to a
receiver. Pipes never touch the blob store: bytes flow straight from the
sender's request into the receiver's response.
"""

import threading
import time
from collections import deque
from typing import BinaryIO, Deque, Dict, Iterator, Optional

from quickshare.domain.errors import ShareTimeoutError

DEFAULT_CHUNK_SIZE = 64 * 1024


class PipeTransfer:
    """
    One body offered on a pipe.

    The sender blocks until the receiver claims the transfer and calls
    `finish()` after draining it.
    """

    def __init__(self, stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self._stream = stream
        self._chunk_size = chunk_size
        self._claimed = threading.Event()
        self._done = threading.Event()
        self.bytes_relayed = 0
        self.last_activity = time.monotonic()

    @property
    def claimed(self) -> bool:
        return self._claimed.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def claim(self) -> None:
        self.last_activity = time.monotonic()
        self._claimed.set()

    def iter_chunks(self) -> Iterator[bytes]:
        """Yield the sender's body chunk by chunk."""
        while True:
            chunk = self._stream.read(self._chunk_size)
            if not chunk:
                break
            self.bytes_relayed += len(chunk)
            self.last_activity = time.monotonic()
            yield chunk

    def finish(self) -> None:
        """Release the sender, whether or not the body was fully drained."""
        self._done.set()

    def wait_claimed(self, timeout: Optional[float]) -> bool:
        return self._claimed.wait(timeout)

    def wait_done(self, timeout: Optional[float]) -> bool:
        return self._done.wait(timeout)


class _Pipe:
    def __init__(self):
        self.pending: Deque[PipeTransfer] = deque()
        self.senders = 0
        self.receivers = 0

    def is_idle(self) -> bool:
        return not self.pending and self.senders == 0 and self.receivers == 0


class PipeRelay:
    """
    Domain service managing named pipes.

    A pipe exists only while a sender or receiver is attached to it; idle
    pipes are pruned as soon as the last party leaves.
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Longest wait for the other party, and longest idle gap
                while relaying; None waits forever
        """
        self.timeout = timeout
        self._cond = threading.Condition()
        self._pipes: Dict[str, _Pipe] = {}

    def send(self, name: str, stream: BinaryIO) -> int:
        """
        Offer a body on a pipe and block until a receiver has drained it.

        Args:
            name: Pipe name
            stream: Body to relay

        Returns:
            Number of bytes the receiver read

        Raises:
            ShareTimeoutError: No receiver claimed the body in time, or the
                receiver stalled longer than the timeout
        """
        transfer = PipeTransfer(stream)
        with self._cond:
            pipe = self._pipes.setdefault(name, _Pipe())
            pipe.pending.append(transfer)
            pipe.senders += 1
            self._cond.notify_all()

        try:
            if not transfer.wait_claimed(self.timeout):
                with self._cond:
                    if not transfer.claimed:
                        pipe.pending.remove(transfer)
                        raise ShareTimeoutError(f"No receiver for pipe {name!r}")

            while not transfer.wait_done(self.timeout):
                if self.timeout is not None and (
                    time.monotonic() - transfer.last_activity > self.timeout
                ):
                    raise ShareTimeoutError(f"Receiver stalled on pipe {name!r}")
            return transfer.bytes_relayed
        finally:
            with self._cond:
                pipe.senders -= 1
                self._prune(name, pipe)

    def receive(self, name: str) -> PipeTransfer:
        """
        Wait for a sender on a pipe and claim its body.

        The caller must call `finish()` on the returned transfer.

        Raises:
            ShareTimeoutError: No sender offered a body in time
        """
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        with self._cond:
            pipe = self._pipes.setdefault(name, _Pipe())
            pipe.receivers += 1
            try:
                while not pipe.pending:
                    if deadline is None:
                        self._cond.wait()
                        continue
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise ShareTimeoutError(f"No sender for pipe {name!r}")
                    self._cond.wait(remaining)
                transfer = pipe.pending.popleft()
                transfer.claim()
                return transfer
            finally:
                pipe.receivers -= 1
                self._prune(name, pipe)

    def active_pipes(self) -> int:
        """Return the number of pipes with a party attached."""
        with self._cond:
            return len(self._pipes)

    def _prune(self, name: str, pipe: _Pipe) -> None:
        if pipe.is_idle() and self._pipes.get(name) is pipe:
            del self._pipes[name]
