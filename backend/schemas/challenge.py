from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class Animation(str, Enum):
    PULSE = "pulse"
    ROTATE = "rotate"
    FADE = "fade"
    NONE = "none"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Polygon(CamelModel):
    id: int
    points: tuple[tuple[float, float], ...] = Field(min_length=3)  # normalized [0, 1]
    color: str = Field(pattern=r"^#[0-9A-F]{6}$")
    opacity: float = Field(gt=0, le=1)
    animation: Animation
    duration: int  # ms
    rotation_center: tuple[float, float] | None = None

    @model_validator(mode="after")
    def _rotation_center_matches_animation(self):
        if (self.animation == Animation.ROTATE) != (self.rotation_center is not None):
            raise ValueError("rotationCenter must be set exactly when animation is 'rotate'")
        return self


class Challenge(CamelModel):
    challenge_id: str
    nonce: str
    polygons: tuple[Polygon, ...]
    client_id: str
    created_at: int  # unix ms
    expires_at: int  # unix ms


class ChallengeResponse(CamelModel):
    challenge_id: str
    nonce: str
    polygons: tuple[Polygon, ...]
    expires_at: int
    ttl: int


class ChallengeVerifyResponse(CamelModel):
    valid: bool
    message: str | None = None
