"""WikiTree API response schemas for ``getProfile``."""

from __future__ import annotations

import logging
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

log = logging.getLogger(__name__)

type WikiTreeId = str  # "Smith-123"
type WikiTreeDate = str  # "1847-03-12", unknown parts are zero: "1847-00-00"


class WikiTreeBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)
    _logged_extra_keys: ClassVar[set[str]] = set()

    def model_post_init(self, _context: object, /) -> None:
        extras = self.__pydantic_extra__
        if not extras:
            return
        new_keys = set(extras).difference(self._logged_extra_keys)
        if not new_keys:
            return
        self._logged_extra_keys.update(new_keys)
        log.debug(
            "WikiTree %s: unmodeled keys: %s",
            type(self).__name__,
            ", ".join(sorted(new_keys)),
        )


class WikiTreePersonName(WikiTreeBaseModel):
    id: int = Field(alias="Id")
    name: WikiTreeId = Field(alias="Name")
    first_name: str | None = Field(default=None, alias="FirstName")
    middle_name: str | None = Field(default=None, alias="MiddleName")
    real_name: str | None = Field(default=None, alias="RealName")
    last_name_at_birth: str | None = Field(default=None, alias="LastNameAtBirth")
    last_name_current: str | None = Field(default=None, alias="LastNameCurrent")
    gender: str | None = Field(default=None, alias="Gender")

    @property
    def display_name(self) -> str:
        given = self.first_name or self.real_name
        surname = self.last_name_at_birth or self.last_name_current
        parts = [part.strip() for part in (given, self.middle_name, surname) if part]
        return " ".join(part for part in parts if part) or self.name


class WikiTreeParent(WikiTreePersonName):
    """Parent profile as embedded under ``Parents``."""


class WikiTreeProfile(WikiTreePersonName):
    last_name_other: str | None = Field(default=None, alias="LastNameOther")
    nicknames: str | None = Field(default=None, alias="Nicknames")
    birth_date: WikiTreeDate | None = Field(default=None, alias="BirthDate")
    death_date: WikiTreeDate | None = Field(default=None, alias="DeathDate")
    birth_location: str | None = Field(default=None, alias="BirthLocation")
    death_location: str | None = Field(default=None, alias="DeathLocation")
    father: int | None = Field(default=None, alias="Father")
    mother: int | None = Field(default=None, alias="Mother")
    # WikiTree sends [] instead of {} when no parent is known
    parents: dict[str, WikiTreeParent] | list[WikiTreeParent] | None = Field(
        default=None, alias="Parents"
    )

    def parent(self, parent_id: int | None) -> WikiTreeParent | None:
        if not parent_id:
            return None
        if isinstance(self.parents, dict):
            return self.parents.get(str(parent_id))
        for candidate in self.parents or ():
            if candidate.id == parent_id:
                return candidate
        return None


class WikiTreeProfileResponse(WikiTreeBaseModel):
    page_name: str | None = None
    status: int | str = 0
    profile: WikiTreeProfile | None = None

    @property
    def ok(self) -> bool:
        return self.status in (0, "0") and self.profile is not None
