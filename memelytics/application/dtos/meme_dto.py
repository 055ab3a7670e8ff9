from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from memelytics.domain.entities.meme import MemeEntity
from memelytics.domain.entities.user import UserEntity


class UserResponse(BaseModel):
    id: str = Field(..., description="Unique identifier of the user")
    wallet_address: str = Field(..., description="Lowercased wallet address", examples=["0x52908400098527886e0f7030069857d2e4169ee7"])
    created_at: datetime | None = Field(None, description="When the user first signed in")
    meme_ids: list[str] = Field(default_factory=list, description="Saved memes, oldest first")

    @classmethod
    def from_entity(cls, entity: UserEntity) -> UserResponse:
        return cls(
            id=entity.id,
            wallet_address=entity.wallet_address,
            created_at=entity.created_at,
            meme_ids=list(entity.meme_ids),
        )


class EnsureUserResponse(BaseModel):
    message: str = Field(..., examples=["User created"])
    user: UserResponse


class MemeResponse(BaseModel):
    id: str = Field(..., description="Unique identifier of the meme")
    user_id: str = Field(..., description="Owner's user id")
    image_url: str = Field(..., description="Public URL of the stored raster")
    category: str = Field(..., description="Client chosen type", examples=["meme"])
    tags: list[str] = Field(default_factory=list, description="Free-form labels", examples=[["gm", "wagmi"]])
    created_at: datetime = Field(..., description="Creation timestamp")
    downloads: int = Field(0, ge=0)
    shares: int = Field(0, ge=0)

    @classmethod
    def from_entity(cls, entity: MemeEntity) -> MemeResponse:
        return cls(
            id=entity.id,
            user_id=entity.user_id,
            image_url=entity.image_url,
            category=entity.category,
            tags=list(entity.tags),
            created_at=entity.created_at,
            downloads=entity.downloads,
            shares=entity.shares,
        )


class SaveMemeRequest(BaseModel):
    """Save an already exported raster, as sent by a browser client."""
    data_url: str = Field(..., description="base64 image data URL", examples=["data:image/png;base64,iVBORw0KGgo..."])
    type: str = Field(..., min_length=1, description="Meme category", examples=["meme"])
    tags: list[str] = Field(default_factory=list, description="Optional labels")


class SaveMemeResponse(BaseModel):
    message: str = Field("Meme saved")
    meme_id: str = Field(..., description="Durable id of the saved record")
    image_url: str | None = Field(None, description="Public URL of the stored raster")


class MemeEventRequest(BaseModel):
    action: str = Field(..., description="Counter to increment", examples=["download", "share"])


class UploadResponse(BaseModel):
    url: str = Field(..., description="Public URL of the uploaded file")
    path: str = Field(..., description="Storage path of the uploaded file")
    size: int = Field(..., ge=0, description="Size in bytes")
