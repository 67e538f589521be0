# transferpilot/core/categories.py

import mimetypes
from pathlib import Path
from typing import Tuple

IMAGES = "Images"
VIDEOS = "Videos"
AUDIO = "Audio"
DOCUMENTS = "Documents"
ARCHIVES = "Archives"
CODE = "Code"
OTHER = "Other"
FOLDERS = "Folders"

CATEGORY_FOLDERS = (FOLDERS, IMAGES, VIDEOS, AUDIO, DOCUMENTS, ARCHIVES, CODE, OTHER)

NO_EXTENSION = "noext"

# Media types the platform mime database does not always know about
MEDIA_EXTENSIONS = {
    IMAGES: {
        "jpg", "jpeg", "png", "gif", "bmp", "webp", "heic", "heif", "tif", "tiff",
        "svg", "ico", "dng", "cr2", "cr3", "nef", "arw", "raf", "orf", "rw2", "raw",
        "psd", "exr", "dpx",
    },
    VIDEOS: {
        "mp4", "mov", "m4v", "avi", "mkv", "webm", "wmv", "flv", "mpg", "mpeg",
        "mxf", "mts", "m2ts", "3gp", "braw", "r3d",
    },
    AUDIO: {
        "mp3", "wav", "aif", "aiff", "flac", "aac", "m4a", "ogg", "opus", "wma",
    },
}

DOCUMENT_EXTENSIONS = {
    "pdf", "doc", "docx", "ppt", "pptx", "xls", "xlsx", "txt", "md", "rtf", "csv", "json",
}

ARCHIVE_EXTENSIONS = {"zip", "7z", "rar", "tar", "gz", "bz2"}

CODE_EXTENSIONS = {
    "js", "ts", "tsx", "jsx", "py", "go", "java", "kt", "rs", "c", "cpp", "h", "hpp",
    "cs", "rb", "php", "sh", "yaml", "yml", "toml",
}

_MIME_CATEGORIES = {"image": IMAGES, "video": VIDEOS, "audio": AUDIO}


def extension_of(path) -> str:
    """Lowercase extension without the dot, or 'noext'."""
    suffix = Path(path).suffix
    return suffix[1:].lower() if len(suffix) > 1 else NO_EXTENSION


def category_for_extension(ext: str) -> str:
    """
    Map an extension (no dot) to its category folder.

    Media lookups come first so that ambiguous suffixes such as '.ts' resolve
    the same way the mime database does; unmatched extensions fall to Other.
    """
    ext = ext.lower().lstrip(".")
    if not ext or ext == NO_EXTENSION:
        return OTHER

    for category, extensions in MEDIA_EXTENSIONS.items():
        if ext in extensions:
            return category

    mime_type, _ = mimetypes.guess_type(f"file.{ext}", strict=False)
    if mime_type:
        major = mime_type.split("/", 1)[0]
        if major in _MIME_CATEGORIES:
            return _MIME_CATEGORIES[major]

    if ext in DOCUMENT_EXTENSIONS:
        return DOCUMENTS
    if ext in ARCHIVE_EXTENSIONS:
        return ARCHIVES
    if ext in CODE_EXTENSIONS:
        return CODE
    return OTHER


def categorize(path) -> Tuple[str, str]:
    """Return (category, extension) for a file path."""
    ext = extension_of(path)
    return category_for_extension(ext), ext
