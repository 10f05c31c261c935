"""
Upload endpoints shared by every app (apartment photos, amenity images,
avatars, post images).
"""
from dataclasses import asdict
from ninja import Router, File, Schema
from ninja.files import UploadedFile
from ninja.errors import HttpError
from django.http import HttpRequest

from apps.identity.decorators import login_required
from .upload_service import upload_image

upload_router = Router(tags=["Upload"])


class UploadedImageOut(Schema):
    image_url: str
    file_name: str
    file_size: int
    file_type: str


@upload_router.post("/image", response=UploadedImageOut, auth=None)
@login_required
def upload_image_api(request: HttpRequest, image: UploadedFile = File(...)):
    """
    Upload one image (multipart field `image`).

    Accepts JPEG, PNG, GIF or WEBP up to 5MB.
    """
    try:
        result = upload_image(image)
    except ValueError as e:
        raise HttpError(400, str(e))
    return asdict(result)
