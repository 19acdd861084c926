"""Constants and configuration values for the conversion engine."""

from typing import Dict, List, Tuple

# Processing Limits
MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB
DETECTION_SAMPLE_SIZE = 8192  # Bytes read for content sniffing
DEFAULT_CONVERSION_TIMEOUT = 30.0  # Seconds, 0 disables
DEFAULT_CANCEL_GRACE_PERIOD = 5.0  # Seconds a worker gets to reach a checkpoint
MAX_CONCURRENT_CONVERSIONS = 4

# Scratch directories live inside the output directory so the final
# os.replace() never crosses a filesystem boundary
TEMP_DIR_PREFIX = ".fileconv-"

# Media types (shared vocabulary of both detection paths)
TEXT_PLAIN = "text/plain"
TEXT_HTML = "text/html"
TEXT_MARKDOWN = "text/markdown"
TEXT_CSV = "text/csv"
TEXT_CSS = "text/css"
TEXT_JAVASCRIPT = "text/javascript"
APPLICATION_PDF = "application/pdf"
APPLICATION_JSON = "application/json"
APPLICATION_XML = "application/xml"
APPLICATION_YAML = "application/yaml"
APPLICATION_TOML = "application/toml"
APPLICATION_ZIP = "application/zip"
APPLICATION_DOCX = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
)
IMAGE_JPEG = "image/jpeg"
IMAGE_PNG = "image/png"
IMAGE_GIF = "image/gif"
IMAGE_BMP = "image/bmp"
IMAGE_WEBP = "image/webp"
IMAGE_TIFF = "image/tiff"
IMAGE_ICO = "image/vnd.microsoft.icon"
IMAGE_SVG = "image/svg+xml"

# Extension -> media type table for name-based detection
EXTENSION_MEDIA_TYPES: Dict[str, str] = {
    ".txt": TEXT_PLAIN,
    ".text": TEXT_PLAIN,
    ".log": TEXT_PLAIN,
    ".md": TEXT_MARKDOWN,
    ".markdown": TEXT_MARKDOWN,
    ".html": TEXT_HTML,
    ".htm": TEXT_HTML,
    ".csv": TEXT_CSV,
    ".json": APPLICATION_JSON,
    ".xml": APPLICATION_XML,
    ".yaml": APPLICATION_YAML,
    ".yml": APPLICATION_YAML,
    ".toml": APPLICATION_TOML,
    ".css": TEXT_CSS,
    ".js": TEXT_JAVASCRIPT,
    ".mjs": TEXT_JAVASCRIPT,
    ".svg": IMAGE_SVG,
    ".pdf": APPLICATION_PDF,
    ".zip": APPLICATION_ZIP,
    ".docx": APPLICATION_DOCX,
    ".jpg": IMAGE_JPEG,
    ".jpeg": IMAGE_JPEG,
    ".jpe": IMAGE_JPEG,
    ".png": IMAGE_PNG,
    ".gif": IMAGE_GIF,
    ".bmp": IMAGE_BMP,
    ".webp": IMAGE_WEBP,
    ".tif": IMAGE_TIFF,
    ".tiff": IMAGE_TIFF,
    ".ico": IMAGE_ICO,
}

# Media types stored as text; a matching extension wins over text/plain
TEXTUAL_MEDIA_TYPES = {
    TEXT_PLAIN,
    TEXT_HTML,
    TEXT_MARKDOWN,
    TEXT_CSV,
    APPLICATION_JSON,
    APPLICATION_XML,
    APPLICATION_YAML,
    APPLICATION_TOML,
    TEXT_CSS,
    TEXT_JAVASCRIPT,
    IMAGE_SVG,
}

# Magic bytes for content-based detection, checked in order
MAGIC_SIGNATURES: List[Tuple[bytes, str]] = [
    (b"%PDF-", APPLICATION_PDF),
    (b"\x89PNG\r\n\x1a\n", IMAGE_PNG),
    (b"\xff\xd8\xff", IMAGE_JPEG),
    (b"GIF87a", IMAGE_GIF),
    (b"GIF89a", IMAGE_GIF),
    (b"RIFF", "RIFF"),  # WebP needs the form type at offset 8
    (b"II*\x00", IMAGE_TIFF),
    (b"MM\x00*", IMAGE_TIFF),
    (b"BM", IMAGE_BMP),
    (b"\x00\x00\x01\x00", IMAGE_ICO),
    (b"PK\x03\x04", APPLICATION_ZIP),  # Refined by extension (docx)
]

# ZIP based formats recognised by extension once the container matched
ZIP_CONTAINER_TYPES = {
    ".docx": APPLICATION_DOCX,
}

# PIL format name -> media type
PIL_FORMAT_MEDIA_TYPES: Dict[str, str] = {
    "JPEG": IMAGE_JPEG,
    "PNG": IMAGE_PNG,
    "GIF": IMAGE_GIF,
    "BMP": IMAGE_BMP,
    "WEBP": IMAGE_WEBP,
    "TIFF": IMAGE_TIFF,
    "ICO": IMAGE_ICO,
}

# Format aliases mapping to canonical names
FORMAT_ALIASES: Dict[str, str] = {
    "jpg": "jpeg",
    "jpe": "jpeg",
    "tif": "tiff",
    "txt": "text",
    "plain": "text",
    "md": "markdown",
    "htm": "html",
}

# Canonical format -> file extension (without dot)
FORMAT_EXTENSIONS: Dict[str, str] = {
    "text": "txt",
    "markdown": "md",
    "html": "html",
    "pdf": "pdf",
    "docx": "docx",
    "jpeg": "jpg",
    "png": "png",
    "gif": "gif",
    "bmp": "bmp",
    "webp": "webp",
    "tiff": "tiff",
}

# Canonical format -> media type of the produced artifact
FORMAT_MEDIA_TYPES: Dict[str, str] = {
    "text": TEXT_PLAIN,
    "markdown": TEXT_MARKDOWN,
    "html": TEXT_HTML,
    "pdf": APPLICATION_PDF,
    "docx": APPLICATION_DOCX,
    "jpeg": IMAGE_JPEG,
    "png": IMAGE_PNG,
    "gif": IMAGE_GIF,
    "bmp": IMAGE_BMP,
    "webp": IMAGE_WEBP,
    "tiff": IMAGE_TIFF,
}

# Shipped registry: media type key -> advertised output formats
DEFAULT_SUPPORTED_CONVERSIONS: Dict[str, List[str]] = {
    TEXT_PLAIN: ["pdf", "html", "markdown"],
    APPLICATION_PDF: ["text", "docx"],
    IMAGE_JPEG: ["png", "gif", "bmp", "webp"],
    IMAGE_PNG: ["jpeg", "gif", "bmp", "webp"],
}

# Image defaults
DEFAULT_QUALITY = 85
PNG_COMPRESS_LEVEL = 6
WEBP_METHOD = 4

# PDF rendering
PDF_PAGE_SIZES = ("A4", "LETTER")
DEFAULT_PDF_FONT_SIZE = 10
PDF_CHECKPOINT_LINES = 200  # Lines between cancellation checkpoints
