# uploads.py
import base64

from fastapi import UploadFile

import config
from errors import ValidationFailed


async def image_data_url(upload: UploadFile) -> str:
    """Inline an uploaded image as a data URL, the form the client stores."""
    ctype = (upload.content_type or "").lower()
    if not ctype.startswith("image/"):
        raise ValidationFailed("Only image uploads are accepted", code="errorUploadType")
    raw = await upload.read()
    if not raw:
        raise ValidationFailed("Uploaded file is empty", code="errorUploadEmpty")
    if len(raw) > config.MAX_UPLOAD_BYTES:
        raise ValidationFailed("Uploaded file is too large", code="errorUploadSize")
    return f"data:{ctype};base64,{base64.b64encode(raw).decode('ascii')}"
