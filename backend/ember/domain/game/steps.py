"""Ordered game steps and the transitions the clients normally follow.

The server persists any named step it is asked for; this table only
describes the usual flow so clients can render "what comes next".
"""

from __future__ import annotations

from typing import Dict, Tuple

TRANSITIONS: Dict[str, Tuple[str, ...]] = {
	"Lobby": ("CategorySelection",),
	"CategorySelection": ("SpicyLevel",),
	"SpicyLevel": ("Question",),
	"Question": ("Reveal",),
	"Reveal": ("Question", "Summary"),
	"Summary": ("CategorySelection", "Lobby"),
}


def next_steps(step: str) -> Tuple[str, ...]:
	return TRANSITIONS.get(step, ())


def is_listed_transition(current: str, target: str) -> bool:
	return target == current or target in TRANSITIONS.get(current, ())