"""
Give up before lambda kills the invocation

If lambda times out, no response is ever sent and cloudformation waits for its own (much longer)
timeout. Instead the workflow runs in a worker thread, and if it hasn't finished shortly before
lambda's deadline we stop waiting and report a failure.

A thread can't be killed, so the abandoned worker is told to stop through the `cancelled` event.
Everything that calls AWS checks the event first and raises WorkflowCancelledError once it is set.
A call the worker has already started may still complete.

"""

import concurrent.futures
import logging
import threading

from workload_domains.errors import DeadlineExceededError, WorkflowCancelledError

logger = logging.getLogger(__name__)


def check_cancelled(cancelled, /):
    """
    Stop an abandoned workflow before it makes another call

    :param cancelled: A threading.Event, or None if the workflow can't be cancelled
    :raises WorkflowCancelledError: If the event is set

    """

    if cancelled is not None and cancelled.is_set():
        raise WorkflowCancelledError()


class Deadline:
    def __init__(self, seconds, description='reconcile the resource'):
        self.seconds = max(seconds, 0)
        self.description = description
        self.cancelled = threading.Event()

    @classmethod
    def from_context(cls, context, margin, description='reconcile the resource'):
        """
        A deadline `margin` seconds before the invocation's time runs out

        :param context: lambda execution context
        :param margin: seconds to keep in reserve for sending the response

        """

        return cls(context.get_remaining_time_in_millis() / 1000 - margin, description)

    def run(self, workflow, /):
        """
        Run workflow, waiting no longer than the deadline

        The workflow should pass `self.cancelled` to everything that makes AWS calls.

        :param workflow: A callable that takes no arguments
        :returns: Whatever workflow returns
        :raises DeadlineExceededError: If the deadline passes first

        """

        executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix='reconcile')
        future = executor.submit(workflow)

        # Don't wait for the worker when we return
        executor.shutdown(wait=False)

        try:
            return future.result(timeout=self.seconds)
        except concurrent.futures.TimeoutError:
            if future.done():
                # The workflow raised this itself
                raise

            self.cancelled.set()
            logger.error(f'Deadline of {self.seconds:.0f}s passed, abandoning the workflow')
            raise DeadlineExceededError(self.seconds, self.description) from None
