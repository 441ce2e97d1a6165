"""Media host upload models."""

from typing import Optional

from pydantic import BaseModel


class UploadResult(BaseModel):
    """Subset of the media host's upload response that we keep."""

    url: str
    secure_url: Optional[str] = None
    public_id: Optional[str] = None
    resource_type: Optional[str] = None
    bytes: Optional[int] = None
