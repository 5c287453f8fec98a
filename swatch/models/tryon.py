"""Request and response bodies for the try-on image workflow."""

from __future__ import annotations

from pydantic import BaseModel


class ModelPhotoRequest(BaseModel):
    image: str


class TryOnRequest(BaseModel):
    person_image: str
    garment_image: str


class PoseRequest(BaseModel):
    image: str
    pose_instruction: str


class ImageResponse(BaseModel):
    image: str
