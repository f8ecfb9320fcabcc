"""Best-effort notifications emitted by the engine."""

from __future__ import annotations

import abc
import logging

from .constants import GATE_TOPIC
from .contracts import GateOpenedEvent, HumanGateStep, WorkflowRun
from .transports import EventTransport

logger = logging.getLogger(__name__)


class NotificationSink(metaclass=abc.ABCMeta):
    """Told when a run pauses on a human gate.

    Delivery failures are logged by the engine and never block the
    transition that triggered them.
    """

    @abc.abstractmethod
    async def on_gate_opened(self, run: WorkflowRun, step: HumanGateStep) -> None:
        raise NotImplementedError


class NullNotificationSink(NotificationSink):
    async def on_gate_opened(self, run: WorkflowRun, step: HumanGateStep) -> None:
        return None


class TransportNotificationSink(NotificationSink):
    """Publish a ``GateOpenedEvent`` for delivery services to pick up."""

    def __init__(self, transport: EventTransport, topic: str = GATE_TOPIC) -> None:
        self._transport = transport
        self._topic = topic

    async def on_gate_opened(self, run: WorkflowRun, step: HumanGateStep) -> None:
        event = GateOpenedEvent.for_step(run, step)
        await self._transport.publish(self._topic, event)
        logger.info(
            f"Published gate event {event.event_id} for run {run.id} step {step.id}"
        )
