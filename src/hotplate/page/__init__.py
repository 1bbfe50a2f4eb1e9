"""Page hosts and the document model."""

from hotplate.page.document import Document, element_record
from hotplate.page.headless import HeadlessPage, StructlogConsole
from hotplate.page.raster import BrowserRasterizer

__all__ = [
    "BrowserRasterizer",
    "Document",
    "HeadlessPage",
    "StructlogConsole",
    "element_record",
]
