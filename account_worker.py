# -*- coding: utf-8 -*-
"""
Per-account IMAP IDLE state machine.

One worker owns one account and cycles forever:
connect, login, select INBOX, fetch flags, IDLE until woken or timed out,
run the account's commands, DONE + LOGOUT, sleep, start over.
Any failure before the commands run drops the session and goes straight
to the retry sleep. The delay is fixed and every cycle ends with it.
"""

import enum
import threading
from dataclasses import dataclass

from loguru import logger

import handlers
import imap_utils
from imap_utils import GATEWAY_ERRORS
from imap_utils import WaitOutcome


class Phase(enum.Enum):
    CONNECT = "connect"
    AUTHENTICATE = "authenticate"
    SELECT_MAILBOX = "select mailbox"
    BASELINE = "baseline fetch"
    WAIT = "wait"
    REACT = "react"
    TEARDOWN = "teardown"
    BACKOFF = "backoff"


@dataclass
class WorkerState:
    """Everything one cycle knows. Replaced wholesale when a new cycle starts."""

    phase: Phase = Phase.CONNECT
    connection: object = None
    exists: int | None = None
    idle: object = None
    wake: object = None
    handlers_ok: bool | None = None
    failed_phase: Phase | None = None


class AccountWorker:
    """
    Drive one account through the IDLE cycle.

    Args:
        account: config_data.Account
        settings: config_data.Settings (retry, idle_timeout, socket_timeout)
        gateway: Object exposing the imap_utils functions
        dispatch: (name, commands) -> bool
        stop_event: threading.Event ending run_forever(); shared by all workers
        sleep: (seconds) -> None used for the retry delay
               Defaults to stop_event.wait so shutdown cuts the delay short
    """

    def __init__(
        self,
        account,
        settings,
        gateway=imap_utils,
        dispatch=handlers.run_handlers,
        stop_event=None,
        sleep=None,
    ):
        self.account = account
        self.settings = settings
        self.gateway = gateway
        self.dispatch = dispatch
        self.stop_event = stop_event or threading.Event()
        self.sleep = sleep or self.stop_event.wait
        self.state = WorkerState()

        self._steps = {
            Phase.CONNECT: self._connect,
            Phase.AUTHENTICATE: self._authenticate,
            Phase.SELECT_MAILBOX: self._select_mailbox,
            Phase.BASELINE: self._baseline,
            Phase.WAIT: self._wait,
            Phase.REACT: self._react,
            Phase.TEARDOWN: self._teardown,
            Phase.BACKOFF: self._backoff,
        }

    @property
    def name(self):
        return self.account.display_name

    # ------------------------------------------------------------------
    # Driving
    # ------------------------------------------------------------------

    def step(self):
        """Run the current phase once and move to the phase it returns"""
        phase = self.state.phase
        try:
            next_phase = self._steps[phase]()
        except GATEWAY_ERRORS as e:
            logger.error(f"{self.name}: {phase.value} failed, will retry: {e!r}")
            next_phase = self._abort(phase)
        except Exception:
            logger.exception(f"{self.name}: unexpected error during {phase.value}")
            next_phase = self._abort(phase)

        self.state.phase = next_phase
        return next_phase

    def run_cycle(self):
        """
        Run phases from CONNECT through BACKOFF.

        Returns:
            The WorkerState of the completed cycle
        """
        state = self.state = WorkerState()
        while self.step() is not Phase.CONNECT:
            pass
        return state

    def run_forever(self):
        logger.info(f"{self.name}: monitoring account")
        while not self.stop_event.is_set():
            self.run_cycle()
        logger.info(f"{self.name}: stopped")

    def interrupt(self):
        """End a live IDLE wait early; does nothing outside WAIT"""
        idle = self.state.idle
        if idle is not None:
            self.gateway.interrupt_idle(idle)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _connect(self):
        host, port = self.account.host, self.account.imap_port
        self.state.connection = self.gateway.connect(
            host, port, self.account.tls, self.settings.socket_timeout
        )
        logger.info(f"{self.name}: connected to {host}:{port}")
        return Phase.AUTHENTICATE

    def _authenticate(self):
        self.gateway.login(self.state.connection, self.account.user, self.account.password)
        logger.info(f"{self.name}: logged in to {self.account.host}:{self.account.imap_port}")
        return Phase.SELECT_MAILBOX

    def _select_mailbox(self):
        self.state.exists = self.gateway.select_mailbox(self.state.connection, imap_utils.INBOX)
        logger.debug(f"{self.name}: selected {imap_utils.INBOX}")
        return Phase.BASELINE

    def _baseline(self):
        if self.state.exists == 0:
            messages = []
        else:
            messages = self.gateway.fetch_flags(self.state.connection, imap_utils.ALL_MESSAGES)
        logger.debug(f"{self.name}: number of fetched messages: {len(messages)}")
        return Phase.WAIT

    def _wait(self):
        self.state.idle = self.gateway.begin_idle(self.state.connection)
        logger.debug(f"{self.name}: initialised IDLE")

        timeout = self.settings.idle_timeout
        logger.info(f"{self.name}: waiting for new mail or timeout of {timeout}s")
        wake = self.state.wake = self.gateway.wait_idle(self.state.idle, timeout)

        if wake.outcome is WaitOutcome.MANUAL_INTERRUPT:
            logger.info(f"{self.name}: IDLE manually interrupted, will re-establish")
        elif wake.outcome is WaitOutcome.TIMEOUT:
            logger.info(f"{self.name}: IDLE timed out, will re-establish")
        else:
            logger.info(f"{self.name}: IDLE woke up with new data")
            payload = wake.data.decode("utf-8", errors="replace").rstrip()
            logger.debug(f"{self.name}: IDLE new data received:\n {payload}")
        return Phase.REACT

    def _react(self):
        if self.stop_event.is_set():
            logger.info(f"{self.name}: shutting down, not running handlers")
            return Phase.TEARDOWN

        logger.info(f"{self.name}: IDLE woke up, running handlers")
        ok = self.state.handlers_ok = self.dispatch(self.name, self.account.commands)
        if ok:
            logger.info(f"{self.name}: handlers ran successfully")
        else:
            logger.error(f"{self.name}: handler reported an error")
        return Phase.TEARDOWN

    def _teardown(self):
        state = self.state

        if state.idle is not None:
            logger.debug(f"{self.name}: sending DONE prior to logout")
            try:
                self.gateway.end_idle(state.idle)
            except GATEWAY_ERRORS as e:
                logger.warning(f"{self.name}: error sending DONE prior to logout: {e!r}")
                self.gateway.release_idle(state.idle)
            state.idle = None

        logger.debug(f"{self.name}: logging out of session before creating new IDLE request")
        try:
            self.gateway.logout(state.connection)
            logger.debug(f"{self.name}: logged out")
        except GATEWAY_ERRORS as e:
            logger.error(f"{self.name}: failed to log out: {e!r}")

        self._release()
        return Phase.BACKOFF

    def _backoff(self):
        retry = self.settings.retry
        logger.debug(f"{self.name}: IMAP connection ended. will retry in {retry}s.")
        self.sleep(retry)
        return Phase.CONNECT

    # ------------------------------------------------------------------
    # Failure path
    # ------------------------------------------------------------------

    def _abort(self, phase):
        """Drop the session without logging out and route to the retry sleep"""
        self.state.failed_phase = phase
        if phase is Phase.BACKOFF:
            return Phase.CONNECT
        if self.state.idle is not None:
            self.gateway.release_idle(self.state.idle)
            self.state.idle = None
        self._release()
        return Phase.BACKOFF

    def _release(self):
        connection = self.state.connection
        self.state.connection = None
        if connection is not None:
            self.gateway.disconnect(connection)
