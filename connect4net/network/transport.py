"""
transport.py - Point-to-point TCP connection carrying move records

A Transport connects exactly two peers, either by listening for one inbound
connection or by connecting out. Every move is sent as one fixed-size frame of
three 32-bit integers (row, col, color) in network byte order.

All operations return a TransportResult instead of raising; socket errors are
converted at this boundary and logged.
"""

import socket
import struct
import threading
from enum import Enum
from typing import NamedTuple, Optional

from connect4net.debug import debug
from connect4net.utils import (ACCEPT_POLL_INTERVAL, FRAME_FORMAT, Color, ErrorKind,
                               MoveRecord, is_valid_record)

FRAME = struct.Struct(FRAME_FORMAT)


class Role(Enum):
    LISTENER = "listener"
    CONNECTOR = "connector"


class TransportResult(NamedTuple):
    """
    Outcome of a transport operation.

    A receive that ends because the connection was closed cleanly has ok=True,
    record=None and error=PEER_CLOSED.
    """
    ok: bool
    record: Optional[MoveRecord] = None
    error: Optional[ErrorKind] = None
    detail: str = ""


def encode_record(record: MoveRecord) -> bytes:
    return FRAME.pack(record.row, record.col, record.color.value)


def decode_record(frame: bytes) -> MoveRecord:
    """
    Decode one frame.

    Raises:
        ValueError: if the frame has the wrong size or names an impossible move
    """
    if len(frame) != FRAME.size:
        raise ValueError(f"Expected {FRAME.size} bytes, got {len(frame)}")
    row, col, color = FRAME.unpack(frame)
    record = MoveRecord(row, col, Color(color))
    if not is_valid_record(record):
        raise ValueError(f"Record out of range: ({row}, {col}, {color})")
    return record


class Transport:
    """
    One connection, one game. A Transport cannot be reopened after close.

    close() may be called from any thread; it makes a blocked receive() return
    a clean end-of-connection result and abandons a pending listen.
    """

    def __init__(self, connect_timeout: Optional[float] = 10.0):
        self.connect_timeout = connect_timeout
        self.local_port: Optional[int] = None
        self.peer_address = None
        self.listening = threading.Event()
        self._sock: Optional[socket.socket] = None
        self._server: Optional[socket.socket] = None
        self._closed = threading.Event()
        self._started = False
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._sock is not None and not self._closed.is_set()

    def open(self, role: Role, address: str, port: int) -> TransportResult:
        """
        Establish the connection.

        Args:
            role: LISTENER blocks until one peer connects; CONNECTOR connects out
            address: Interface to bind (listener) or host to reach (connector)
            port: TCP port; a listener may pass 0 and read local_port afterwards

        Returns:
            TransportResult with error TRANSPORT_SETUP_FAILURE on failure
        """
        with self._lock:
            if self._started or self._closed.is_set():
                return self._setup_failure("Transport has already been used.")
            # From here on close() cancels the open, even before a socket exists
            self._started = True

        if role == Role.LISTENER:
            result = self._listen(address, port)
        else:
            result = self._connect(address, port)

        if not result.ok:
            self._closed.set()
        return result

    def _listen(self, address: str, port: int) -> TransportResult:
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server.bind((address, port))
            server.listen(1)
            server.settimeout(ACCEPT_POLL_INTERVAL)
        except OSError as e:
            server.close()
            return self._setup_failure(f"Could not listen on {address}:{port}: {e}")

        with self._lock:
            if self._closed.is_set():
                server.close()
                return self._setup_failure("Listening was cancelled before a peer connected.")
            self._server = server
        self.local_port = server.getsockname()[1]
        self.listening.set()
        debug.info(f"Listening on {address}:{self.local_port}", "transport")

        try:
            while not self._closed.is_set():
                try:
                    conn, peer = server.accept()
                except socket.timeout:
                    continue
                return self._adopt(conn, peer)
            return self._setup_failure("Listening was cancelled before a peer connected.")
        except OSError as e:
            return self._setup_failure(f"Error while waiting for a peer: {e}")
        finally:
            server.close()
            with self._lock:
                self._server = None

    def _connect(self, address: str, port: int) -> TransportResult:
        debug.info(f"Connecting to {address}:{port}", "transport")
        try:
            conn = socket.create_connection((address, port), timeout=self.connect_timeout)
        except OSError as e:
            return self._setup_failure(f"Could not connect to {address}:{port}: {e}")
        return self._adopt(conn, (address, port))

    def _adopt(self, conn: socket.socket, peer) -> TransportResult:
        conn.settimeout(None)
        conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        with self._lock:
            if self._closed.is_set():
                conn.close()
                return self._setup_failure("Transport was closed while connecting.")
            self._sock = conn
            self.peer_address = peer
        debug.info(f"Connected to peer {peer}", "transport")
        return TransportResult(True)

    def send(self, record: MoveRecord) -> TransportResult:
        """Write one move record."""
        sock = self._sock
        if sock is None or self._closed.is_set():
            return self._failure(ErrorKind.NOT_CONNECTED, "Cannot send on a connection that is not open.")

        try:
            sock.sendall(encode_record(record))
        except OSError as e:
            return self._failure(ErrorKind.TRANSPORT_IO_FAILURE, f"Error while sending move: {e}")

        debug.debug(f"Sent {record}", "transport")
        return TransportResult(True, record)

    def receive(self) -> TransportResult:
        """
        Block until one move record arrives or the connection ends.

        Returns:
            TransportResult carrying the record; record is None with error
            PEER_CLOSED when either side closed the connection cleanly
        """
        sock = self._sock
        if sock is None:
            return self._failure(ErrorKind.NOT_CONNECTED, "Cannot receive on a connection that is not open.")

        frame = b""
        try:
            while len(frame) < FRAME.size:
                chunk = sock.recv(FRAME.size - len(frame))
                if not chunk:
                    break
                frame += chunk
        except OSError as e:
            if self._closed.is_set():
                return self._closed_result("Connection closed locally.")
            return self._failure(ErrorKind.TRANSPORT_IO_FAILURE, f"Error while receiving move: {e}")

        if not frame:
            if self._closed.is_set():
                return self._closed_result("Connection closed locally.")
            return self._closed_result("Connection closed by peer.")

        if len(frame) < FRAME.size:
            return self._failure(ErrorKind.TRANSPORT_IO_FAILURE,
                                 f"Connection ended mid-record after {len(frame)} bytes.")

        try:
            record = decode_record(frame)
        except ValueError as e:
            return self._failure(ErrorKind.TRANSPORT_IO_FAILURE, f"Malformed move record: {e}")

        debug.debug(f"Received {record}", "transport")
        return TransportResult(True, record)

    def close(self) -> TransportResult:
        """
        Close the connection, or stop waiting for one.

        Returns:
            TransportResult; NOT_CONNECTED if there was nothing to close
        """
        with self._lock:
            if self._closed.is_set() or not self._started:
                return self._failure(ErrorKind.NOT_CONNECTED, "Attempted to close a connection that is not open.")
            self._closed.set()
            sock = self._sock

        if sock is None:
            debug.info("Stopped waiting for a connection", "transport")
            return TransportResult(True)

        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            # The peer may have reset the connection already
            debug.debug(f"Shutdown reported: {e}", "transport")

        try:
            sock.close()
        except OSError as e:
            return self._failure(ErrorKind.TRANSPORT_IO_FAILURE, f"Error while closing connection: {e}")

        debug.info("Connection closed", "transport")
        return TransportResult(True)

    def _setup_failure(self, detail: str) -> TransportResult:
        return self._failure(ErrorKind.TRANSPORT_SETUP_FAILURE, detail)

    def _closed_result(self, detail: str) -> TransportResult:
        debug.info(detail, "transport")
        return TransportResult(True, None, ErrorKind.PEER_CLOSED, detail)

    def _failure(self, kind: ErrorKind, detail: str) -> TransportResult:
        debug.warning(f"{kind.name}: {detail}", "transport")
        return TransportResult(False, None, kind, detail)
