"""Document parsing (PDF via PyMuPDF, plain text, markdown)."""

from ragkit.services.parsing.document_parser import DocumentParser

__all__ = ["DocumentParser"]
