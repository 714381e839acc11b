# -*- coding: utf-8 -*-
"""
Test doubles shared across the test modules.
"""

import socket
import threading

from config_data import Account
from imap_utils import WaitOutcome
from imap_utils import WaitResult


def make_account(**overrides):
    values = dict(
        host="mail.example.com",
        user="u",
        password="p",
        tls=True,
        port=993,
        commands=("notify-send hi",),
    )
    values.update(overrides)
    return Account(**values)


class FakeGateway:
    """
    Stand-in for imap_utils recording every call.

    failures maps an operation name to the exception it raises;
    wait_results is consumed in order, falling back to TIMEOUT.
    """

    def __init__(self, failures=None, wait_results=None, exists=0, messages=()):
        self.failures = dict(failures or {})
        self.wait_results = list(wait_results or [])
        self.exists = exists
        self.messages = list(messages)
        self.calls = []
        self.wait_timeouts = []

    def _call(self, op, *args):
        self.calls.append(op)
        if op in self.failures:
            raise self.failures[op]

    def connect(self, host, port, use_tls=True, timeout=None):
        self._call("connect", host, port, use_tls)
        self.timeout = timeout
        return ("connection", host, port)

    def login(self, connection, user, password):
        self._call("login")
        return connection

    def select_mailbox(self, connection, mailbox):
        self._call("select")
        self.selected = mailbox
        return self.exists

    def fetch_flags(self, connection, message_range):
        self._call("fetch")
        return list(self.messages)

    def begin_idle(self, connection):
        self._call("begin_idle")
        return "idle"

    def wait_idle(self, idle, timeout):
        self._call("wait")
        self.wait_timeouts.append(timeout)
        if self.wait_results:
            return self.wait_results.pop(0)
        return WaitResult(WaitOutcome.TIMEOUT)

    def interrupt_idle(self, idle):
        self._call("interrupt")

    def end_idle(self, idle):
        self._call("done")

    def release_idle(self, idle):
        self.calls.append("release_idle")

    def logout(self, connection):
        self._call("logout")

    def disconnect(self, connection):
        self.calls.append("disconnect")


class ScriptedImapServer:
    """
    Minimal IMAP server on localhost serving a single client.

    replies maps a command verb to the bytes sent back, with "{tag}"
    replaced by the command's tag ("DONE" answers with the IDLE tag).
    A verb mapped to None is read and never answered.
    """

    REPLIES = {
        "CAPABILITY": "* CAPABILITY IMAP4rev1 IDLE\r\n{tag} OK CAPABILITY completed\r\n",
        "LOGIN": "{tag} OK LOGIN completed\r\n",
        "SELECT": "* 0 EXISTS\r\n{tag} OK [READ-WRITE] SELECT completed\r\n",
        "IDLE": "+ idling\r\n",
        "DONE": "{tag} OK IDLE terminated\r\n",
        "LOGOUT": "* BYE logging out\r\n{tag} OK LOGOUT completed\r\n",
    }

    def __init__(self, **replies):
        self.replies = dict(self.REPLIES)
        self.replies.update(replies)
        self.received = []
        self.listener = socket.create_server(("127.0.0.1", 0))
        self.port = self.listener.getsockname()[1]
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _serve(self):
        try:
            conn, _ = self.listener.accept()
        except OSError:
            return
        with conn:
            conn.sendall(b"* OK test server ready\r\n")
            idle_tag = ""
            for raw in conn.makefile("rb"):
                parts = raw.decode("ascii", errors="replace").split()
                if not parts:
                    continue
                if parts[0].upper() == "DONE":
                    tag, verb = idle_tag, "DONE"
                else:
                    tag, verb = parts[0], parts[1].upper() if len(parts) > 1 else ""
                if verb == "IDLE":
                    idle_tag = tag
                self.received.append(verb)
                reply = self.replies.get(verb)
                if reply:
                    conn.sendall(reply.format(tag=tag).encode("ascii"))

    def close(self):
        self.listener.close()
