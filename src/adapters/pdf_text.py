import io
import logging

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from ports.analysis import PdfText

logger = logging.getLogger(__name__)

DEFAULT_PDF_TITLE = "Extracted PDF Text"


class PdfExtractionError(Exception):
    pass


def extract_pdf_text(data: bytes) -> PdfText:
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PdfReadError, ValueError, OSError) as exc:
        raise PdfExtractionError(str(exc)) from exc

    info = {}
    metadata = reader.metadata
    if metadata:
        for key, value in metadata.items():
            info[key.lstrip("/")] = str(value)
    if not info:
        info = {"title": DEFAULT_PDF_TITLE}

    logger.info("Extracted %d pages from PDF", len(pages))
    return PdfText(text="\n".join(pages), pages=len(pages), info=info)
