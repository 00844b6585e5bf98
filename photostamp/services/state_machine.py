from __future__ import annotations

from enum import Enum
from typing import Dict, Tuple

from photostamp.errors import InvalidTransition


class ProcessingStatus(str, Enum):
	IDLE = "idle"
	READING = "reading"
	GEOCODING = "geocoding"
	DRAWING = "drawing"
	READY = "ready"
	ERROR = "error"


class PipelineEvent(str, Enum):
	START = "start"
	METADATA_READ = "metadata_read"
	LOCATION_RESOLVED = "location_resolved"
	STAMP_RENDERED = "stamp_rendered"
	FAILED = "failed"


TERMINAL_STATES = frozenset({ProcessingStatus.READY, ProcessingStatus.ERROR})

_TRANSITIONS: Dict[Tuple[ProcessingStatus, PipelineEvent], ProcessingStatus] = {
	(ProcessingStatus.IDLE, PipelineEvent.START): ProcessingStatus.READING,
	(ProcessingStatus.READING, PipelineEvent.METADATA_READ): ProcessingStatus.GEOCODING,
	(ProcessingStatus.GEOCODING, PipelineEvent.LOCATION_RESOLVED): ProcessingStatus.DRAWING,
	(ProcessingStatus.DRAWING, PipelineEvent.STAMP_RENDERED): ProcessingStatus.READY,
}


def transition(state: ProcessingStatus, event: PipelineEvent) -> ProcessingStatus:
	"""Return the state a task moves to when ``event`` happens in ``state``.

	``FAILED`` is accepted from every non-terminal state. Anything else not in
	the table raises :class:`InvalidTransition`.
	"""
	if event is PipelineEvent.FAILED and state not in TERMINAL_STATES:
		return ProcessingStatus.ERROR
	try:
		return _TRANSITIONS[(state, event)]
	except KeyError:
		raise InvalidTransition(f"cannot apply '{event.value}' to a task in state '{state.value}'") from None
