"""Pydantic schemas for the member lookup API."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from memberfind.domain.members import models


class AutocompleteQuery(BaseModel):
	context: Optional[str] = Field(default=None, description="party, privateGuild, publicGuild or tavern")
	id: Optional[str] = Field(default=None, description="Group the lookup is scoped to")


class MemberResult(BaseModel):
	id: str
	display_name: str
	username: str
	contributor_level: Optional[int] = None

	@classmethod
	def from_profile(cls, profile: models.MemberProfile) -> "MemberResult":
		return cls(
			id=profile.member_id,
			display_name=profile.display_name,
			username=profile.username,
			contributor_level=profile.contributor_level,
		)
