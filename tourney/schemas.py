# tourney/schemas.py
# ------------------------------------------------------------
# Pydantic v2 schemas, organized by domain.
# Wire names are camelCase (teamId, scoreTeam1, ...).
# ------------------------------------------------------------
from datetime import date, datetime
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


_CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
_SCRIPT_TAG_RE = re.compile(r"<\s*/?\s*script", re.IGNORECASE)
_HAS_LETTER_RE = re.compile(r"[A-Za-z]")


def _sanitize_single_line_text(value: str | None, *, allow_empty: bool = False) -> str | None:
    if value is None:
        return value
    if not isinstance(value, str):
        raise TypeError("Expected string input")
    cleaned = _CONTROL_CHAR_RE.sub("", value).strip()
    if not allow_empty and not cleaned:
        raise ValueError("Value cannot be empty")
    if any(ch in {"\n", "\r"} for ch in cleaned):
        raise ValueError("Value must be a single line of text")
    if "<" in cleaned or ">" in cleaned:
        raise ValueError("HTML tags are not allowed in this field")
    return cleaned


def _sanitize_multiline_text(value: str | None, *, allow_empty: bool = False) -> str | None:
    if value is None:
        return value
    if not isinstance(value, str):
        raise TypeError("Expected string input")
    cleaned = _CONTROL_CHAR_RE.sub("", value).strip()
    if not allow_empty and not cleaned:
        raise ValueError("Value cannot be empty")
    if _SCRIPT_TAG_RE.search(cleaned):
        raise ValueError("Script tags are not allowed")
    return cleaned


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CamelReadModel(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ============================================================
# Users / auth
# ============================================================

class UserSignup(CamelModel):
    username: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)

    @field_validator("username", mode="before")
    @classmethod
    def _clean_username(cls, value: str) -> str:
        return _sanitize_single_line_text(value)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserLogin(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserRead(CamelReadModel):
    id: int
    username: str
    email: str
    role: str
    team_id: Optional[int] = None


class AdminUserCreate(CamelModel):
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(max_length=128)
    role: str

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def _clean_name(cls, value: str) -> str:
        return _sanitize_single_line_text(value)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("password")
    @classmethod
    def _check_password(cls, value: str) -> str:
        if len(value) < 6 or not _HAS_LETTER_RE.search(value):
            raise ValueError("Password must have 6 characters and contain a letter")
        return value

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class RoleUpdate(CamelModel):
    role: str


# ============================================================
# Universities
# ============================================================

class UniversityIn(CamelModel):
    name: str = Field(min_length=1, max_length=150)
    location: Optional[str] = Field(default=None, max_length=150)
    founded: Optional[int] = Field(default=None, ge=0, le=9999)
    description: Optional[str] = Field(default=None, max_length=5000)
    logo_url: Optional[str] = Field(default=None, alias="logoURL", max_length=500)
    picture_url: Optional[str] = Field(default=None, alias="pictureURL", max_length=500)

    @field_validator("name", mode="before")
    @classmethod
    def _clean_name(cls, value: str) -> str:
        return _sanitize_single_line_text(value)

    @field_validator("location", "logo_url", "picture_url", mode="before")
    @classmethod
    def _clean_optional_line(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize_single_line_text(value, allow_empty=True) if value is not None else value

    @field_validator("description", mode="before")
    @classmethod
    def _clean_description(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize_multiline_text(value, allow_empty=True) if value is not None else value


class UniversityRead(CamelReadModel):
    id: int
    name: str
    location: Optional[str] = None
    founded: Optional[int] = None
    description: Optional[str] = None
    emblem_url: Optional[str] = None
    image_url: Optional[str] = None


# ============================================================
# Teams
# ============================================================

class TeamCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    university_id: int

    @field_validator("name", mode="before")
    @classmethod
    def _clean_name(cls, value: str) -> str:
        return _sanitize_single_line_text(value)


class TeamUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    university_id: Optional[int] = None
    new_leader_id: Optional[int] = None
    member_to_delete_id: Optional[int] = None

    @field_validator("name", mode="before")
    @classmethod
    def _clean_name(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize_single_line_text(value) if value is not None else value


class TeamRead(CamelReadModel):
    id: int
    name: str
    university_id: int
    university_name: Optional[str] = None
    created_at: Optional[datetime] = None


class TeamMemberRead(CamelReadModel):
    user_id: int
    name: str
    role: str


class CollegeTeamRow(CamelReadModel):
    team_id: int
    name: str
    user_id: Optional[int] = None
    player_name: Optional[str] = None
    image_url: Optional[str] = None
    role: Optional[str] = None


class PlayerCreate(CamelModel):
    team_id: int
    user_id: int


# ============================================================
# Tournaments
# ============================================================

class TournamentCreate(CamelModel):
    name: str = Field(min_length=1, max_length=150)
    start_date: date
    location: Optional[str] = Field(default=None, max_length=150)

    @field_validator("name", mode="before")
    @classmethod
    def _clean_name(cls, value: str) -> str:
        return _sanitize_single_line_text(value)

    @field_validator("location", mode="before")
    @classmethod
    def _clean_location(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize_single_line_text(value, allow_empty=True) if value is not None else value


class TournamentRead(CamelReadModel):
    id: int
    name: str
    start_date: date
    location: Optional[str] = None


class TournamentSignup(CamelModel):
    tournament_id: int
    team_id: Optional[int] = None


# ============================================================
# Schedule & results
# ============================================================

class ScheduleCreate(CamelModel):
    tournament_id: int
    match_date: datetime
    team1_id: int
    team2_id: int

    @model_validator(mode="after")
    def _distinct_teams(self) -> "ScheduleCreate":
        if self.team1_id == self.team2_id:
            raise ValueError("A team cannot play itself")
        return self


class ScheduleRead(CamelReadModel):
    schedule_id: int
    match_id: int
    tournament_id: int
    team1_id: int
    team2_id: int
    team1_name: str
    team2_name: str
    scheduled_date: datetime


class MatchRead(CamelReadModel):
    match_id: int
    tournament_id: Optional[int] = None
    team1_id: int
    team2_id: int
    team1_name: str
    team2_name: str
    score_team1: Optional[int] = None
    score_team2: Optional[int] = None
    winner_id: Optional[int] = None
    match_date: Optional[datetime] = None


class MatchResultIn(CamelModel):
    match_id: int
    score_team1: int = Field(ge=0)
    score_team2: int = Field(ge=0)
