"""Garment identity models shared with the host application."""

from __future__ import annotations

from pydantic import BaseModel


class Garment(BaseModel):
    id: str
    name: str
    url: str
    description: str = ""
    brand: str = ""


class AppliedGarment(Garment):
    """Identity of a garment variation handed back to the host on apply."""

    color_key: str
