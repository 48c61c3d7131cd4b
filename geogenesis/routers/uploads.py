"""Reading the captured photo from a multipart upload or a base64 form field."""

from fastapi import HTTPException, UploadFile

from geogenesis.services.photo_service import decode_image_payload

SUPPORTED_CONTENT_TYPES = ["image/jpeg", "image/png", "image/webp", "image/heic"]


async def read_image(
    file: UploadFile | None, image_base64: str | None, max_bytes: int
) -> bytes:
    if file is not None:
        if file.content_type and file.content_type not in SUPPORTED_CONTENT_TYPES:
            raise HTTPException(
                400, f"Invalid file type. Only {', '.join(SUPPORTED_CONTENT_TYPES)} allowed."
            )
        image = await file.read()
    elif image_base64:
        try:
            image = decode_image_payload(image_base64)
        except ValueError as e:
            raise HTTPException(400, str(e))
    else:
        raise HTTPException(400, "A photo is required.")

    if not image:
        raise HTTPException(400, "Uploaded photo is empty.")
    if len(image) > max_bytes:
        raise HTTPException(
            413, f"File too large. Maximum size is {max_bytes // 1024 // 1024} MB."
        )
    return image
