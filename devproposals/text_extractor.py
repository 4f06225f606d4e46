"""
Document -> plain text.

A DocumentReference is either a local path (relative paths resolve against the
uploads directory) or an http(s) URL. URL payloads are staged in a uniquely
named temp file and decoded exactly like local files.
"""
import io
import logging
import os
import re
import secrets
import time
import zipfile
from functools import partial
from typing import Callable, Dict, Optional
from urllib.parse import urlparse

import pandas as pd
import requests
from bs4 import BeautifulSoup
from docx import Document
from PyPDF2 import PdfReader

from .config import Settings
from .errors import (
    ConnectionRefusedByHostError,
    DocumentDecodeError,
    DocumentFetchError,
    DocumentNotFoundError,
    ExtractionError,
    HostUnreachableError,
    UntrustedReferenceError,
)

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = [
    ".txt", ".md", ".csv",
    ".pdf", ".doc", ".docx", ".rtf",
    ".xls", ".xlsx", ".ppt", ".pptx",
    ".odt", ".ods", ".odp",
    ".html", ".htm", ".xml",
]

DEFAULT_URL_EXTENSION = ".pdf"

_DNS_FAILURE_MARKERS = (
    "NameResolutionError",
    "Name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "Temporary failure in name resolution",
    "Failed to resolve",
)
_REFUSED_MARKERS = ("Connection refused", "ECONNREFUSED", "[Errno 111]", "[WinError 10061]")


# ---------- Cleanup ----------
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")
_WHITESPACE_RUN = re.compile(r"\s+")
_PDF_HEADER = re.compile(r"%PDF-\S*")
_PDF_OBJ_OPEN = re.compile(r"obj\s*<<")
_PDF_OBJ_CLOSE = re.compile(r">>\s*endobj")
_EXCESS_NEWLINES = re.compile(r"\n\s*\n\s*\n")
_ELLIPSIS_RUN = re.compile(r"\.{3,}")


def _clean_once(text: str) -> str:
    text = _CONTROL_CHARS.sub("", text)
    text = _WHITESPACE_RUN.sub(" ", text)
    text = _PDF_HEADER.sub("", text)
    text = _PDF_OBJ_OPEN.sub("", text)
    text = _PDF_OBJ_CLOSE.sub("", text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    text = _ELLIPSIS_RUN.sub("...", text)
    return text.strip()


def clean_extracted_text(text: Optional[str]) -> str:
    """
    Strip binary/PDF artifacts and normalize whitespace.
    Repeated until nothing changes so the result is stable under re-cleaning.
    """
    if not text:
        return ""
    # every pass is non-growing, so this terminates
    while True:
        cleaned = _clean_once(text)
        if cleaned == text:
            return cleaned
        text = cleaned


# ---------- Decoders ----------
def extract_text_from_pdf(file_bytes: bytes) -> str:
    reader = PdfReader(io.BytesIO(file_bytes))
    text = []
    for number, page in enumerate(reader.pages, start=1):
        try:
            t = page.extract_text()
            if t:
                text.append(t)
        except Exception:
            logger.warning("Skipping unreadable PDF page %d", number)
            continue
    return "\n".join(text)


def extract_text_from_txt(file_bytes: bytes) -> str:
    return file_bytes.decode("utf-8", errors="ignore")


def extract_text_from_docx(file_bytes: bytes) -> str:
    doc = Document(io.BytesIO(file_bytes))
    lines = [p.text for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [c.text.strip() for c in row.cells if c.text.strip()]
            if cells:
                lines.append(" | ".join(cells))
    return "\n".join(lines)


_EXCEL_ENGINES = {".xls": "xlrd", ".xlsx": "openpyxl", ".ods": "odf"}


def extract_text_from_spreadsheet(file_bytes: bytes, ext: str) -> str:
    sheets = pd.read_excel(
        io.BytesIO(file_bytes), sheet_name=None, header=None, dtype=str, engine=_EXCEL_ENGINES[ext]
    )
    parts = []
    for name, df in sheets.items():
        df = df.fillna("")
        parts.append(f"{name}\n{df.to_csv(index=False, header=False)}")
    return "\n".join(parts)


_XML_DECLARATION = re.compile(r"^[\s\ufeff]*<\?xml[^>]*>", re.IGNORECASE)


def _soup(markup: str) -> BeautifulSoup:
    # pptx slides and ODF content.xml also go through html.parser; without the
    # declaration bs4 has no reason to emit XMLParsedAsHTMLWarning
    return BeautifulSoup(_XML_DECLARATION.sub("", markup, count=1), "html.parser")


def extract_text_from_html(file_bytes: bytes) -> str:
    soup = _soup(file_bytes.decode("utf-8", errors="ignore"))
    for el in soup(["script", "style", "noscript", "svg"]):
        el.decompose()
    return soup.get_text(separator="\n", strip=True)


def extract_text_from_xml(file_bytes: bytes) -> str:
    return _soup(file_bytes.decode("utf-8", errors="ignore")).get_text(separator="\n", strip=True)


_SLIDE_NAME = re.compile(r"^ppt/slides/slide(\d+)\.xml$")


def extract_text_from_pptx(file_bytes: bytes) -> str:
    with zipfile.ZipFile(io.BytesIO(file_bytes)) as archive:
        slides = []
        for name in archive.namelist():
            m = _SLIDE_NAME.match(name)
            if m:
                slides.append((int(m.group(1)), name))
        slides.sort()
        lines = []
        for _, name in slides:
            soup = _soup(archive.read(name).decode("utf-8", errors="ignore"))
            runs = [t.get_text() for t in soup.find_all("a:t")]
            if runs:
                lines.append(" ".join(runs))
    return "\n".join(lines)


def extract_text_from_opendocument(file_bytes: bytes) -> str:
    """Text and presentation documents (.odt, .odp)."""
    with zipfile.ZipFile(io.BytesIO(file_bytes)) as archive:
        content = archive.read("content.xml").decode("utf-8", errors="ignore")
    soup = _soup(content)
    blocks = [b.get_text(" ", strip=True) for b in soup.find_all(["text:h", "text:p"])]
    return "\n".join(b for b in blocks if b)


_RTF_TOKEN = re.compile(
    r"\\([a-z]{1,32})(-?\d{1,10})? ?|\\'([0-9a-f]{2})|\\([^a-z])|([{}])|[\r\n]+|(.)",
    re.IGNORECASE | re.DOTALL,
)
_RTF_SKIP_DESTINATIONS = {
    "fonttbl", "colortbl", "stylesheet", "info", "pict", "header", "footer",
    "listtable", "listoverridetable", "generator", "themedata", "datastore",
    "latentstyles", "rsidtbl", "xmlnstbl", "filetbl", "object",
}


def extract_text_from_rtf(file_bytes: bytes) -> str:
    data = file_bytes.decode("latin-1")
    out = []
    stack = []
    skip = False
    group_start = False
    fallback = 0  # chars to drop after a \uN escape
    for m in _RTF_TOKEN.finditer(data):
        word, arg, hexcode, symbol, brace, char = m.groups()
        if brace == "{":
            stack.append(skip)
            group_start = True
            continue
        if brace == "}":
            skip = stack.pop() if stack else False
            group_start = False
            continue
        if not (word or hexcode or symbol or char):
            continue
        at_start, group_start = group_start, False
        if skip:
            continue
        if word:
            word = word.lower()
            if at_start and word in _RTF_SKIP_DESTINATIONS:
                skip = True
            elif word in ("par", "line", "sect", "page", "row"):
                out.append("\n")
            elif word in ("tab", "cell"):
                out.append("\t")
            elif word == "u" and arg:
                out.append(chr(int(arg) % 0x10000))
                fallback = 1
        elif hexcode:
            if fallback:
                fallback -= 1
                continue
            out.append(bytes([int(hexcode, 16)]).decode("cp1252", errors="ignore"))
        elif symbol:
            if symbol == "*" and at_start:
                skip = True
            elif symbol in "\\{}":
                out.append(symbol)
            elif symbol == "~":
                out.append(" ")
        elif char:
            if fallback:
                fallback -= 1
                continue
            out.append(char)
    return "".join(out)


_UTF16_RUN = re.compile(rb"(?:[\x20-\x7e\t\r\n]\x00){4,}")
_ASCII_RUN = re.compile(rb"[\x20-\x7e\t\r\n]{4,}")


# OLE2 directory entries, stored as UTF-16 in every container
_OLE_ENTRY_NAMES = {
    "Root Entry", "WordDocument", "0Table", "1Table", "Data", "CompObj", "ObjInfo",
    "SummaryInformation", "DocumentSummaryInformation", "PowerPoint Document",
    "Current User", "Pictures", "ObjectPool", "Workbook", "Ole",
}


def extract_text_from_legacy_office(file_bytes: bytes) -> str:
    """
    Best-effort text runs from binary .doc/.ppt containers.

    Body text may be stored as UTF-16 or as 8-bit bytes (Word's compressed
    text, PowerPoint's TextBytesAtom), so both kinds of run are kept in file order.
    """
    runs = [(m.start(), m.group().decode("utf-16-le")) for m in _UTF16_RUN.finditer(file_bytes)]
    runs.extend((m.start(), m.group().decode("ascii")) for m in _ASCII_RUN.finditer(file_bytes))
    runs.sort()
    lines = []
    for _, run in runs:
        run = run.strip()
        if run and run not in _OLE_ENTRY_NAMES:
            lines.append(run)
    return "\n".join(lines)


DECODERS: Dict[str, Callable[[bytes], str]] = {
    ".pdf": extract_text_from_pdf,
    ".txt": extract_text_from_txt,
    ".md": extract_text_from_txt,
    ".csv": extract_text_from_txt,
    ".doc": extract_text_from_legacy_office,
    ".docx": extract_text_from_docx,
    ".rtf": extract_text_from_rtf,
    ".xls": partial(extract_text_from_spreadsheet, ext=".xls"),
    ".xlsx": partial(extract_text_from_spreadsheet, ext=".xlsx"),
    ".ppt": extract_text_from_legacy_office,
    ".pptx": extract_text_from_pptx,
    ".odt": extract_text_from_opendocument,
    ".ods": partial(extract_text_from_spreadsheet, ext=".ods"),
    ".odp": extract_text_from_opendocument,
    ".html": extract_text_from_html,
    ".htm": extract_text_from_html,
    ".xml": extract_text_from_xml,
}


def decode_document(filename: str, file_bytes: bytes) -> str:
    """Select the decoder by file extension. Unknown types are read as UTF-8 text."""
    ext = os.path.splitext(filename)[1].lower()
    decoder = DECODERS.get(ext, extract_text_from_txt)
    try:
        return decoder(file_bytes)
    except Exception as e:
        raise DocumentDecodeError(f"Failed to extract text from {filename}: {e}") from e


def is_url(ref: str) -> bool:
    return ref.lower().startswith(("http://", "https://"))


def url_extension(url: str) -> str:
    ext = os.path.splitext(urlparse(url).path)[1].lower()
    return ext or DEFAULT_URL_EXTENSION


def check_reference(ref: str, settings: Settings) -> str:
    """
    Gate for references that arrive from HTTP clients.

    Files must resolve inside the uploads directory (no absolute paths or ".."
    escapes); URLs must point at one of settings.allowed_document_hosts.
    Raises UntrustedReferenceError.
    """
    if is_url(ref):
        host = (urlparse(ref).hostname or "").lower()
        if not host or host not in settings.allowed_document_hosts:
            raise UntrustedReferenceError(f"Document host is not allowed: {host or ref}")
        return ref
    root = os.path.realpath(settings.uploads_dir)
    path = os.path.realpath(os.path.join(root, ref))
    if not path.startswith(root + os.sep):
        raise UntrustedReferenceError(f"Document reference is outside the uploads directory: {ref}")
    return ref


def _connection_failure(url: str, exc: Exception) -> DocumentFetchError:
    detail = f"{exc!r} {exc}"
    host = urlparse(url).hostname or url
    if any(marker in detail for marker in _DNS_FAILURE_MARKERS):
        return HostUnreachableError(f"Cannot reach host {host}: DNS lookup failed. Check the document URL.")
    if any(marker in detail for marker in _REFUSED_MARKERS):
        return ConnectionRefusedByHostError(f"Connection to {host} was refused. Is the file server running?")
    return DocumentFetchError(f"Failed to download document from {url}: {exc}")


class TextExtractor:
    """Turns DocumentReferences into cleaned plain text."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def resolve_path(self, ref: str) -> str:
        if os.path.isabs(ref):
            return ref
        return os.path.abspath(os.path.join(self.settings.uploads_dir, ref))

    def download(self, url: str) -> bytes:
        try:
            resp = requests.get(url, timeout=self.settings.fetch_timeout)
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status == 404:
                raise DocumentNotFoundError(f"Document not found at {url} (HTTP 404)") from e
            raise DocumentFetchError(f"Failed to download document from {url}: HTTP {status}") from e
        except requests.exceptions.Timeout as e:
            raise DocumentFetchError(
                f"Timed out after {self.settings.fetch_timeout:g}s downloading {url}"
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise _connection_failure(url, e) from e
        except requests.exceptions.RequestException as e:
            raise DocumentFetchError(f"Failed to download document from {url}: {e}") from e
        return resp.content

    def temp_path_for(self, url: str) -> str:
        name = f"devproposals-{int(time.time() * 1000)}-{secrets.token_hex(6)}{url_extension(url)}"
        return os.path.join(self.settings.staging_dir, name)

    def extract(self, ref: str) -> str:
        """
        Extract cleaned text from a local path or URL.
        Raises ExtractionError (or a subtype) when the source cannot be read or decoded.
        """
        if is_url(ref):
            return self._extract_url(ref)
        return self.extract_file(self.resolve_path(ref))

    def extract_file(self, path: str) -> str:
        if not os.path.isfile(path):
            raise DocumentNotFoundError(f"File not found: {path}")
        logger.info("Extracting text from %s", path)
        try:
            with open(path, "rb") as f:
                file_bytes = f.read()
        except OSError as e:
            raise ExtractionError(f"Failed to read {path}: {e}") from e
        text = clean_extracted_text(decode_document(path, file_bytes))
        logger.info("Extracted %d characters from %s", len(text), os.path.basename(path))
        return text

    def _extract_url(self, url: str) -> str:
        payload = self.download(url)
        temp_path = self.temp_path_for(url)
        try:
            try:
                with open(temp_path, "wb") as f:
                    f.write(payload)
            except OSError as e:
                raise ExtractionError(f"Failed to stage {url} at {temp_path}: {e}") from e
            return self.extract_file(temp_path)
        finally:
            try:
                os.remove(temp_path)
            except FileNotFoundError:
                pass

    def read_text_file(self, ref: str) -> str:
        """Raw UTF-8 read for sources known to be plain text; no decoder, no cleanup."""
        if is_url(ref):
            return self.download(ref).decode("utf-8", errors="replace")
        path = self.resolve_path(ref)
        if not os.path.isfile(path):
            raise DocumentNotFoundError(f"File not found: {path}")
        with open(path, "rb") as f:
            return f.read().decode("utf-8", errors="replace")
