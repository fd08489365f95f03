"""Read slide text from exported course material."""
import json
import logging
import re
from pathlib import Path

from pharm_study.errors import ExtractionFailed
from pharm_study.models import SlideDeck

logger = logging.getLogger(__name__)

# A line of three or more dashes, or a form feed, separates slides in text exports.
SLIDE_BREAK = re.compile(r"^[ \t]*-{3,}[ \t]*$|\f", re.MULTILINE)

PRESENTATION_SUFFIXES = (".ppt", ".pptx")

# Fields of an extracted-content slide, in reading order.
SLIDE_FIELDS = ("title", "textContent", "text", "keyPoints", "drugReferences", "clinicalPearls")


def split_slides(text: str) -> list[str]:
    return [chunk.strip() for chunk in SLIDE_BREAK.split(text) if chunk.strip()]


def _slide_text(slide) -> str:
    if isinstance(slide, str):
        return slide
    lines = []
    for key in SLIDE_FIELDS:
        value = slide.get(key)
        if isinstance(value, list):
            lines.extend(str(item) for item in value)
        elif value:
            lines.append(str(value))
    return "\n".join(lines)


def slides_from_data(data) -> list[str]:
    """Slides from an extracted-content document or a plain list of slide texts."""
    if isinstance(data, dict):
        data = data.get("slides", [])
    if not isinstance(data, list):
        raise ValueError("expected a list of slides")
    texts = [_slide_text(slide) for slide in data]
    return [text for text in texts if text.strip()]


def read_slides(file_path: str) -> list[str]:
    path = Path(file_path)
    suffix = path.suffix.lower()

    if suffix in (".txt", ".md"):
        return split_slides(path.read_text())
    elif suffix == ".json":
        return slides_from_data(json.loads(path.read_text()))
    elif suffix in (".yaml", ".yml"):
        import yaml
        return slides_from_data(yaml.safe_load(path.read_text()))
    elif suffix == ".pdf":
        from PyPDF2 import PdfReader
        reader = PdfReader(file_path)
        pages = [(page.extract_text() or "").strip() for page in reader.pages]
        return [page for page in pages if page]
    elif suffix in (".html", ".htm"):
        from bs4 import BeautifulSoup
        html = path.read_text()
        return split_slides(BeautifulSoup(html, "html.parser").get_text("\n"))
    else:
        # Try reading as plain text
        return split_slides(path.read_text())


def extract_deck(file_path: str) -> SlideDeck:
    """Read one source document into a deck of slide texts.

    Raises:
        ExtractionFailed: the file is missing, unreadable, malformed, a raw
            PowerPoint file, or needs a reader library that is not installed.
    """
    path = Path(file_path)
    if path.suffix.lower() in PRESENTATION_SUFFIXES:
        raise ExtractionFailed(f"{path.name}: export the presentation to PDF or text before analysis")
    if not path.is_file():
        raise ExtractionFailed(f"File not found: {file_path}")
    try:
        slides = read_slides(str(path))
    except ImportError as exc:
        raise ExtractionFailed(f"{path.name}: reader for {path.suffix} files is not installed ({exc.name})") from exc
    except Exception as exc:
        raise ExtractionFailed(f"{path.name}: {exc}") from exc
    logger.info("Extracted %d slides from %s", len(slides), path.name)
    return SlideDeck(source=str(path), slides=slides)
