# -*- coding: utf-8 -*-
"""
Run one AccountWorker per configured account, each in its own thread.
Workers share nothing but the immutable settings and a stop event; a worker
that keeps failing only retries itself and never touches the others.
"""

import threading

from loguru import logger

from account_worker import AccountWorker


class Supervisor:
    """
    Own the account workers and their threads.

    Args:
        settings: config_data.Settings
        worker_factory: (account, settings, stop_event=...) -> worker
                        Defaults to AccountWorker
    """

    def __init__(self, settings, worker_factory=AccountWorker):
        self.settings = settings
        self.stop_event = threading.Event()
        self.workers = [
            worker_factory(account, settings, stop_event=self.stop_event)
            for account in settings.accounts
        ]
        self.threads = []

    def start(self):
        for worker in self.workers:
            thread = threading.Thread(
                target=worker.run_forever,
                name=f"idlesync-{worker.name}",
                daemon=True,
            )
            thread.start()
            self.threads.append(thread)
        logger.debug(f"started {len(self.threads)} account worker(s)")

    def alive(self):
        return [thread for thread in self.threads if thread.is_alive()]

    def join(self, poll_interval=1.0):
        """Block while any worker thread is alive"""
        while self.alive():
            for thread in self.alive():
                thread.join(poll_interval)

    def stop(self):
        """Ask every worker to finish: cut sleeps short and interrupt IDLE waits"""
        self.stop_event.set()
        for worker in self.workers:
            worker.interrupt()

    def run(self):
        if not self.workers:
            logger.warning("no accounts configured, nothing to watch")
            return

        self.start()
        try:
            self.join()
        except KeyboardInterrupt:
            logger.info("shutting down")
            self.stop()
