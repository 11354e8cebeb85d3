# mechconnect/utils/file_upload.py
import os
import uuid
from fastapi import UploadFile

from ..config import allowed_attachment_types, settings

EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/m4a": "m4a",
    "audio/aac": "aac",
}

def is_voice_note(file: UploadFile) -> bool:
    return (file.content_type or "").startswith("audio/")

def save_attachment(file: UploadFile, owner_id: str) -> str:
    """Store an uploaded photo or voice note and return its public URL.

    Raises ValueError for unsupported content types and OSError when the
    file cannot be written.
    """
    if file.content_type not in allowed_attachment_types:
        raise ValueError(f"Unsupported file type {file.content_type}")

    ext = EXTENSIONS[file.content_type]
    filename = f"request_{owner_id}_{uuid.uuid4().hex}.{ext}"
    os.makedirs(settings.upload_dir, exist_ok=True)
    filepath = os.path.join(settings.upload_dir, filename)

    with open(filepath, "wb") as f:
        f.write(file.file.read())

    return f"/uploads/{filename}"
