# utils/image_utils.py
import base64
import binascii
import io
import logging

from PIL import Image, UnidentifiedImageError

from errors import InvalidImage

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {"image/jpeg", "image/png", "image/webp"}


def parse_data_uri(data_uri):
    """
    Split 'data:<mime>;base64,<payload>' into (mime_type, raw bytes).
    """
    if not data_uri or not isinstance(data_uri, str) or not data_uri.startswith("data:image"):
        raise InvalidImage("Image must be a data URI of the form data:image/<type>;base64,...")
    header, sep, payload = data_uri.partition(",")
    if not sep or ";base64" not in header:
        raise InvalidImage("Image data URI must be base64 encoded")
    mime_type = header[len("data:"):].split(";")[0].lower()
    if mime_type == "image/jpg":
        mime_type = "image/jpeg"
    if mime_type not in ALLOWED_MIME_TYPES:
        raise InvalidImage(f"Unsupported image type '{mime_type}'")
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImage(f"Invalid base64 image: {e}")
    if not raw:
        raise InvalidImage("Image is empty")
    return mime_type, raw


def to_data_uri(mime_type, raw):
    return f"data:{mime_type};base64,{base64.b64encode(raw).decode('utf-8')}"


def _open(raw):
    try:
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImage(f"Could not decode image: {e}")
    return image


def validate_photo(data_uri):
    """Check that a classroom photo decodes; returns the data URI unchanged."""
    _, raw = parse_data_uri(data_uri)
    _open(raw)
    return data_uri


def normalize_profile_photo(data_uri, max_px=512, quality=85):
    """
    Re-encode a reference photo as a JPEG no larger than max_px on its
    longest side. Firestore documents are capped at 1 MiB.
    """
    _, raw = parse_data_uri(data_uri)
    image = _open(raw)
    if image.mode != "RGB":
        image = image.convert("RGB")
    image.thumbnail((max_px, max_px))

    buf = io.BytesIO()
    image.save(buf, format="JPEG", quality=quality)
    logger.debug("Profile photo normalized to %sx%s (%d bytes)", image.width, image.height, buf.tell())
    return to_data_uri("image/jpeg", buf.getvalue())


def photo_from_request(request):
    """
    Classroom/profile photo from either a multipart 'photo' file or a JSON
    'photo' data URI.
    """
    upload = request.files.get("photo")
    if upload is not None and upload.filename:
        raw = upload.read()
        if not raw:
            raise InvalidImage("Uploaded photo is empty")
        mime_type = (upload.mimetype or "").lower()
        if mime_type not in ALLOWED_MIME_TYPES:
            raise InvalidImage(f"Unsupported image type '{mime_type}'")
        return to_data_uri(mime_type, raw)

    data = request.get_json(silent=True) or {}
    photo = data.get("photo")
    if not photo:
        raise InvalidImage("No photo received")
    return photo
