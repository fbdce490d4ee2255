"""Room code generation and normalisation."""

from __future__ import annotations

import re
import secrets

from ember.domain.game.exceptions import ValidationError

# A-Z without I and O, which read too much like 1 and 0.
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ"
ROOM_CODE_LENGTH = 6

_CODE_PATTERN = re.compile(r"^[A-Z]{6}$")


def generate(length: int = ROOM_CODE_LENGTH) -> str:
	"""Draw a code uniformly from the alphabet. Uniqueness is the caller's job."""
	return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))


def normalise(raw: str | None) -> str:
	"""Trim and upper-case a user-typed code, rejecting anything that is not six letters."""
	code = (raw or "").strip().upper()
	if not _CODE_PATTERN.match(code):
		raise ValidationError("invalid_room_code")
	return code


def is_well_formed(code: str) -> bool:
	return len(code) == ROOM_CODE_LENGTH and all(ch in ROOM_CODE_ALPHABET for ch in code)
