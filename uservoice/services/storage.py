# File: uservoice/services/storage.py
import base64, os, re, uuid
import requests
from uservoice.core.config import settings
from uservoice.core.errors import ValidationError

SUPABASE_URL = settings.supabase_url
SUPABASE_SERVICE_ROLE = settings.supabase_service_role
ATTACHMENTS_BUCKET = settings.supabase_attachments_bucket
AVATARS_BUCKET = settings.supabase_avatars_bucket

MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024
MAX_ATTACHMENTS = 5
MAX_AVATAR_BYTES = 5 * 1024 * 1024

ATTACHMENT_TYPES = {
    "image/jpeg": {".jpg", ".jpeg"},
    "image/png": {".png"},
    "image/gif": {".gif"},
    "image/webp": {".webp"},
    "application/pdf": {".pdf"},
    "application/msword": {".doc"},
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": {".docx"},
    "application/vnd.ms-excel": {".xls"},
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": {".xlsx"},
    "text/plain": {".txt"},
    "text/csv": {".csv"},
}
AVATAR_TYPES = {"image/jpeg", "image/png", "image/webp"}


def upload_file(data: bytes, content_type: str, path: str, bucket: str = ATTACHMENTS_BUCKET) -> str:
    """Uploads to Supabase Storage via REST; returns public URL (bucket must be public)."""
    if not (SUPABASE_URL and SUPABASE_SERVICE_ROLE):
        # no storage configured: keep the file inline
        b64 = base64.b64encode(data).decode("utf-8")
        return f"data:{content_type};base64,{b64}"
    url = f"{SUPABASE_URL}/storage/v1/object/{bucket}/{path}"
    r = requests.post(url, headers={
        "Authorization": f"Bearer {SUPABASE_SERVICE_ROLE}",
        "Content-Type": content_type,
        "x-upsert": "true",
    }, data=data, timeout=30)
    r.raise_for_status()
    return f"{SUPABASE_URL}/storage/v1/object/public/{bucket}/{path}"


def delete_file(public_url: str, bucket: str = AVATARS_BUCKET):
    if not (SUPABASE_URL and SUPABASE_SERVICE_ROLE) or not public_url:
        return
    marker = f"/storage/v1/object/public/{bucket}/"
    if marker not in public_url:
        return
    path = public_url.split(marker, 1)[1]
    r = requests.delete(
        f"{SUPABASE_URL}/storage/v1/object/{bucket}/{path}",
        headers={"Authorization": f"Bearer {SUPABASE_SERVICE_ROLE}"},
        timeout=30,
    )
    r.raise_for_status()


def sanitize_filename(filename: str) -> str:
    base = os.path.basename(filename or "file")
    return re.sub(r"[^A-Za-z0-9._-]", "_", base)[:200] or "file"


def make_object_key(prefix: str | int, filename: str) -> str:
    ext = os.path.splitext(filename or "")[1].lower() or ".bin"
    return f"{prefix}/{uuid.uuid4().hex}{ext}"


def check_attachment(filename: str, content_type: str, size: int):
    allowed_ext = ATTACHMENT_TYPES.get(content_type)
    ext = os.path.splitext(filename or "")[1].lower()
    if not allowed_ext or ext not in allowed_ext:
        raise ValidationError(f"File type not allowed: {filename}")
    if size > MAX_ATTACHMENT_BYTES:
        raise ValidationError(f"File too large: {filename} (max 10MB)")


def check_avatar(content_type: str, size: int):
    if content_type not in AVATAR_TYPES:
        raise ValidationError("Only JPEG, PNG and WebP images are allowed")
    if size > MAX_AVATAR_BYTES:
        raise ValidationError("Image too large (max 5MB)")
