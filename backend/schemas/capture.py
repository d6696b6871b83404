from dataclasses import dataclass

from schemas.challenge import CamelModel


@dataclass
class UploadedPhoto:
    """Framework-independent view of a multipart file upload."""
    content: bytes
    size: int
    mimetype: str


class CapturePhotoRequest(CamelModel):
    challenge_id: str
    client_id: str
    video_hash: str
    message: str = ""


class PhotoMetadata(CamelModel):
    photo_id: str
    challenge_id: str
    client_id: str
    message: str
    verified: bool  # challenge was valid; not an image analysis result
    video_hash: str
    timestamp: str  # ISO-8601 UTC
    file_path: str
    photo_url: str
    file_size: int
    mime_type: str


class CaptureResponse(CamelModel):
    photo_id: str
    photo_url: str
    message: str
    verified: bool
    timestamp: str
    client_id: str
