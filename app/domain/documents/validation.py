"""Upload checks for medical documents"""

import os

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

# MIME type -> extensions accepted for it
ALLOWED_TYPES = {
    "application/pdf": {".pdf"},
    "image/jpeg": {".jpg", ".jpeg"},
    "image/png": {".png"},
    "image/gif": {".gif"},
    "application/msword": {".doc"},
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": {".docx"},
    "text/plain": {".txt"},
}

ALLOWED_EXTENSIONS = set().union(*ALLOWED_TYPES.values())


class DocumentValidationError(ValueError):
    pass


def validate_upload(filename: str, content_type: str, size: int) -> str:
    """Check an upload and return its lower-cased extension"""
    if size <= 0:
        raise DocumentValidationError("File is empty")
    if size > MAX_FILE_SIZE:
        raise DocumentValidationError("File size exceeds the 10MB limit")

    if not filename or len(filename) > 255:
        raise DocumentValidationError("Invalid file name")
    if "/" in filename or "\\" in filename or ".." in filename or "\x00" in filename:
        raise DocumentValidationError("File name contains invalid characters")

    content_type = (content_type or "").split(";")[0].strip().lower()
    if content_type not in ALLOWED_TYPES:
        raise DocumentValidationError(
            "File type not allowed. Allowed types: PDF, JPEG, PNG, GIF, DOC, DOCX, TXT"
        )

    extension = os.path.splitext(filename)[1].lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise DocumentValidationError(f"File extension {extension or '(none)'} is not allowed")
    if extension not in ALLOWED_TYPES[content_type]:
        raise DocumentValidationError("File extension does not match the file type")
    return extension
