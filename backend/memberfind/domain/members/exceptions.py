"""Domain-level exceptions for member autocomplete."""

from __future__ import annotations


class MemberSearchError(Exception):
	"""Base class for member search errors."""

	reason: str = "unknown"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class StoreFailure(MemberSearchError):
	"""A backing store call failed; the whole lookup fails with it."""

	reason = "store_unavailable"

	def __init__(self, store: str, reason: str | None = None) -> None:
		super().__init__(reason)
		self.store = store

	def __str__(self) -> str:  # pragma: no cover - debugging aid
		return f"{self.store}: {self.reason}"
