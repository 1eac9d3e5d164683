"""
Delivery of swap lifecycle events.

Events are handed to receivers of `swap_event` only after the transaction
that produced them commits. Receivers (notification and email collaborators)
connect with:

    @receiver(swap_event)
    def notify(sender, event, **kwargs):
        ...

A failing receiver is logged and skipped. It never affects other receivers
or the already-committed swap state.
"""

import logging
from functools import partial

from django.db import transaction
from django.dispatch import Signal, receiver

from .events import to_payload
from .models import SwapRequest

logger = logging.getLogger(__name__)

# Sent with keyword argument `event` (a core.events.SwapEvent instance)
swap_event = Signal()


def deliver_event(event):
    """
    Send `event` to every receiver, logging failures instead of raising.

    Returns:
        list: (receiver, response) pairs as returned by send_robust()
    """
    responses = swap_event.send_robust(sender=SwapRequest, event=event)
    for receiver_func, response in responses:
        if isinstance(response, Exception):
            receiver_name = getattr(receiver_func, '__qualname__', repr(receiver_func))
            logger.error(
                f"Delivery of {event.event_type} for swap request {event.swap_id} "
                f"failed in {receiver_name}: {response}",
                exc_info=response,
            )
    return responses


def publish_event(event, using=None):
    """
    Schedule `event` for delivery once the current transaction commits.

    Outside a transaction the event is delivered immediately. If the
    transaction rolls back, nothing is delivered.
    """
    transaction.on_commit(partial(deliver_event, event), using=using)


@receiver(swap_event, dispatch_uid='core.log_swap_event')
def log_swap_event(sender, event, **kwargs):
    """Record every delivered event in the application log."""
    logger.info(
        f"{event.event_type}: swap request {event.swap_id} "
        f"(requester={event.requester.id}, owner={event.owner.id}, status={event.status})"
    )
    logger.debug(f"{event.event_type} payload: {to_payload(event)}")
