from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

PositiveInt = Annotated[int, Field(ge=1)]
NonNegativeFloat = Annotated[float, Field(ge=0.0)]


class DisclosureConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    replies_per_level: PositiveInt = 3
    max_visible_depth: PositiveInt = 3


class SortingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    default_mode: Literal["newest", "oldest", "top"] = "newest"


class RefreshConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_attempts: PositiveInt = 5
    first_delay_seconds: NonNegativeFloat = 0.5
    step_delay_seconds: NonNegativeFloat = 1.0


class TraversalConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_ancestor_hops: PositiveInt = 1000
    max_reply_depth: PositiveInt = 200


class AppViewConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    service_url: str = "https://public.api.bsky.app"
    reply_depth: Annotated[int, Field(ge=1, le=1000)] = 10
    parent_height: Annotated[int, Field(ge=0, le=1000)] = 80
    timeout_seconds: float = Field(15.0, gt=0.0)
    max_follow_pages: PositiveInt = 20

    @field_validator("service_url")
    @classmethod
    def _service_url_must_be_http(cls, v: str) -> str:
        url = (v or "").strip().rstrip("/")
        if not url.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return url


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    disclosure: DisclosureConfig = Field(default_factory=DisclosureConfig)
    sorting: SortingConfig = Field(default_factory=SortingConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    traversal: TraversalConfig = Field(default_factory=TraversalConfig)
    appview: AppViewConfig = Field(default_factory=AppViewConfig)

    @model_validator(mode="after")
    def _reply_depth_covers_visible_depth(self) -> "AppConfig":
        if self.traversal.max_reply_depth < self.disclosure.max_visible_depth:
            raise ValueError("traversal.max_reply_depth must be >= disclosure.max_visible_depth")
        return self
