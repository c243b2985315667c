import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Any

from fastapi import Request

logger = logging.getLogger(__name__)


def _log_outcome(label: str, future: Future) -> None:
    if future.cancelled():
        logger.warning("Mail task cancelled: %s", label)
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Mail task failed: %s", label, exc_info=exc)
    else:
        logger.info("Mail task sent: %s", label)


class MailDispatcher:
    """
    Fire-and-forget email delivery on a fixed number of worker threads.

    A failed send is logged and otherwise ignored, so request handlers never
    wait on or fail because of SMTP.
    """

    def __init__(self, max_workers: int):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="mailer"
        )

    def submit(
        self, label: str, send: Callable[..., None], *args: Any, **kwargs: Any
    ) -> Future:
        future = self._executor.submit(send, *args, **kwargs)
        future.add_done_callback(partial(_log_outcome, label))
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


def get_mailer(request: Request) -> MailDispatcher:
    mailer = getattr(request.app.state, "mailer", None)
    if mailer is None:
        raise RuntimeError("Mail dispatcher is not configured on application state")
    return mailer
