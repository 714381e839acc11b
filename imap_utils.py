# -*- coding: utf-8 -*-
"""
IMAP protocol utilities: connection helpers, baseline fetch, IDLE wait primitive.

These functions are the mail-access capability the account workers drive.
Every failure surfaces as one of GATEWAY_ERRORS.
"""

import enum
import imaplib
import select
import socket
import ssl
from dataclasses import dataclass

from loguru import logger

CRLF = b"\r\n"
imaplib.Commands["IDLE"] = ("AUTH", "SELECTED")

INBOX = "INBOX"
ALL_MESSAGES = "1:*"
DEFAULT_SOCKET_TIMEOUT = 60

# socket/TLS failures are OSError subclasses; protocol failures are IMAP4.error
GATEWAY_ERRORS = (OSError, imaplib.IMAP4.error)


class WaitOutcome(enum.Enum):
    MANUAL_INTERRUPT = "manual interrupt"
    TIMEOUT = "timeout"
    NEW_DATA = "new data"


@dataclass(frozen=True)
class WaitResult:
    outcome: WaitOutcome
    data: bytes = b""


# ============================================================================
# Session setup
# ============================================================================


def connect(host, port, use_tls=True, timeout=DEFAULT_SOCKET_TIMEOUT):
    """
    Open a transport to host:port.

    With TLS the certificate is verified against `host` by the default
    SSL context; without it a plain IMAP4 connection is made.
    `timeout` bounds every blocking socket call on the connection; the
    IDLE wait itself is bounded separately by select().
    """
    if use_tls:
        context = ssl.create_default_context()
        return imaplib.IMAP4_SSL(host, port, ssl_context=context, timeout=timeout)
    return imaplib.IMAP4(host, port, timeout=timeout)


def login(connection, user, password):
    typ, data = connection.login(user, password)
    if typ != "OK":
        raise connection.error(f"LOGIN failed: {typ} {data}")
    return connection


def select_mailbox(connection, mailbox=INBOX):
    """
    Select mailbox, returning the number of messages it holds.
    """
    typ, data = connection.select(mailbox)
    if typ != "OK":
        raise connection.error(f"SELECT {mailbox} failed: {typ} {data}")
    try:
        return int(data[0])
    except (IndexError, TypeError, ValueError):
        return 0


def fetch_flags(connection, message_range=ALL_MESSAGES):
    """
    Fetch FLAGS for message_range.

    Returns:
        List of raw FETCH response lines, one per message
    """
    typ, data = connection.fetch(message_range, "(FLAGS)")
    if typ != "OK":
        raise connection.error(f"FETCH {message_range} failed: {typ} {data}")
    return [item for item in data if item]


def logout(connection):
    typ, data = connection.logout()
    if typ not in ("OK", "BYE"):
        raise connection.error(f"LOGOUT failed: {typ} {data}")


def disconnect(connection):
    """Drop the transport without any protocol exchange"""
    sock = getattr(connection, "sock", None)
    if sock is not None and sock.fileno() == -1:
        return
    try:
        connection.shutdown()
    except OSError as e:
        logger.debug(f"ignoring error while dropping connection: {e}")


# ============================================================================
# IDLE (RFC 2177)
# ============================================================================


def _tls_pending(sock):
    # decrypted bytes held by the TLS layer never show up in select()
    pending = getattr(sock, "pending", None)
    return pending is not None and pending() > 0


def _recv(connection, sock):
    chunk = sock.recv(4096)
    if not chunk:
        raise connection.abort("connection closed during IDLE")
    return chunk


class IdleWait:
    """
    One IDLE command in flight.

    While IDLE is active the socket is read directly, never through
    imaplib's buffered file, so select() sees everything not yet consumed.
    wait() also watches a private socketpair, so any thread may call
    interrupt() to end the wait early.
    """

    def __init__(self, connection, tag, pending=b""):
        self.connection = connection
        self.tag = tag
        self.pending = pending
        self._wakeup_r, self._wakeup_w = socket.socketpair()
        self.closed = False

    def wait(self, timeout):
        sock = self.connection.socket()

        if self.pending:
            data, self.pending = self.pending, b""
            return WaitResult(WaitOutcome.NEW_DATA, self._read_lines(sock, data))

        if not _tls_pending(sock):
            readable, _, _ = select.select([sock, self._wakeup_r], [], [], timeout)
            if not readable:
                return WaitResult(WaitOutcome.TIMEOUT)

            if self._wakeup_r in readable:
                self._wakeup_r.recv(64)
                return WaitResult(WaitOutcome.MANUAL_INTERRUPT)

        return WaitResult(WaitOutcome.NEW_DATA, self._read_lines(sock))

    def _read_lines(self, sock, data=b""):
        """Read until data ends on a line boundary; bounded by the socket timeout"""
        if not data:
            data = _recv(self.connection, sock)
        while not data.endswith(CRLF):
            data += _recv(self.connection, sock)
        return data

    def interrupt(self):
        if self.closed:
            return
        try:
            self._wakeup_w.send(b"\0")
        except OSError as e:
            # closed by the worker between the check and the send
            logger.debug(f"IDLE interrupt after close ignored: {e}")

    def done(self):
        """Send DONE and read the tagged completion of the IDLE command"""
        try:
            self.connection.send(b"DONE" + CRLF)
            typ, data = self.connection._command_complete("IDLE", self.tag)
        finally:
            self.close()
        if typ != "OK":
            raise self.connection.error(f"IDLE completed with {typ} {data}")
        return self.connection

    def close(self):
        if self.closed:
            return
        self.closed = True
        self._wakeup_r.close()
        self._wakeup_w.close()


def begin_idle(connection):
    """
    Issue IDLE and read up to the server's continuation.

    Untagged lines arriving before the continuation, and anything sent
    after it in the same read, are kept and reported by the first wait.

    Raises:
        IMAP4.error if the server lacks IDLE or rejects the command
        IMAP4.abort if the server hangs up first
    """
    if "IDLE" not in connection.capabilities:
        raise connection.error("server does not support IDLE command.")

    connection.untagged_responses = {}
    tag = connection._command("IDLE")
    sock = connection.socket()

    pending = b""
    data = b""
    while True:
        while CRLF not in data:
            data += _recv(connection, sock)
        line, data = data.split(CRLF, 1)

        if line.startswith(b"+"):
            break
        if line.startswith(tag + b" "):
            connection.tagged_commands.pop(tag, None)
            raise connection.error(f"IDLE rejected by server: {line.decode(errors='replace')}")
        pending += line + CRLF

    return IdleWait(connection, tag, pending + data)


def wait_idle(idle, timeout):
    return idle.wait(timeout)


def interrupt_idle(idle):
    idle.interrupt()


def end_idle(idle):
    return idle.done()


def release_idle(idle):
    idle.close()
