"""
Blob uploads through Cloudinary's unsigned upload API.

Returns the durable `secure_url` for the stored asset. There is no delete or
versioning support and no retry; any failure surfaces as UpstreamError.
"""
import logging
from typing import BinaryIO, Literal, Union

import requests

import config
from errors import UpstreamError

logger = logging.getLogger(__name__)

Kind = Literal["image", "video"]

UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/{kind}/upload"


def upload(content: Union[bytes, BinaryIO], filename: str, kind: Kind = "image") -> str:
    if kind not in ("image", "video"):
        raise ValueError(f"Unsupported upload kind: {kind}")
    cloud_name = config.CLOUDINARY_CLOUD_NAME
    upload_preset = config.CLOUDINARY_UPLOAD_PRESET
    if not cloud_name or not upload_preset:
        raise UpstreamError("Cloudinary configuration is missing")

    url = UPLOAD_URL.format(cloud_name=cloud_name, kind=kind)
    data = {"upload_preset": upload_preset}
    if kind == "video":
        data["resource_type"] = "video"

    try:
        response = requests.post(url, data=data, files={"file": (filename, content)},
                                 timeout=config.CLOUDINARY_TIMEOUT)
    except requests.RequestException as e:
        logger.error(f"Cloudinary {kind} upload failed: {e}")
        raise UpstreamError(f"Upload failed: {e}") from e

    if not response.ok:
        logger.error(f"Cloudinary {kind} upload rejected ({response.status_code}): {response.text[:200]}")
        raise UpstreamError(f"Upload failed: {response.text[:200]}")

    secure_url = response.json().get("secure_url")
    if not secure_url:
        raise UpstreamError("Upload response did not include a URL")
    logger.debug(f"Uploaded {filename} to {secure_url}")
    return secure_url
