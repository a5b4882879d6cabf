"""Built-in and uploaded invoice documents."""

import logging
import re
from pathlib import Path
from typing import Optional

from kimai.core.exceptions import NotFoundError, ValidationError
from kimai.invoice.renderer import RENDERERS, InvoiceDocument
from kimai.utils.file_helper import FileHelper, convert_to_ascii_filename

logger = logging.getLogger(__name__)

BUILTIN_DIRECTORY = Path(__file__).parent / "documents"
# generated by the renderer without a base file
GENERATED_DOCUMENTS = ("default.xlsx",)
MAX_DOCUMENTS = 99
MAX_NAME_LENGTH = 20


class InvoiceDocumentRepository:
    def __init__(self, upload_dir: Path, builtin_dir: Path = BUILTIN_DIRECTORY):
        self.upload_dir = Path(upload_dir)
        self.builtin_dir = Path(builtin_dir)

    @staticmethod
    def _supported(path: Path) -> bool:
        return any(path.suffix.lower() == r.get_file_extension() for r in RENDERERS)

    def find_builtin(self) -> list[InvoiceDocument]:
        documents = [InvoiceDocument(name=name, built_in=True) for name in GENERATED_DOCUMENTS]
        if self.builtin_dir.is_dir():
            documents.extend(
                InvoiceDocument(name=p.name, path=p, built_in=True)
                for p in sorted(self.builtin_dir.iterdir())
                if p.is_file() and self._supported(p)
            )
        return documents

    def find_uploaded(self) -> list[InvoiceDocument]:
        if not self.upload_dir.is_dir():
            return []
        return [
            InvoiceDocument(name=p.name, path=p)
            for p in sorted(self.upload_dir.iterdir())
            if p.is_file() and self._supported(p)
        ]

    def find_all(self) -> list[InvoiceDocument]:
        """Uploaded documents shadow built-in ones with the same name."""
        uploaded = self.find_uploaded()
        names = {d.name for d in uploaded}
        return uploaded + [d for d in self.find_builtin() if d.name not in names]

    def find_by_name(self, name: str) -> Optional[InvoiceDocument]:
        for document in self.find_all():
            if document.name == name:
                return document
        return None

    def upload(self, filename: str, content: bytes) -> InvoiceDocument:
        """Store an uploaded document under a safe, lowercase name.

        Raises:
            ValidationError: Unsupported type or too many documents
        """
        path = Path(filename)
        if not self._supported(path):
            raise ValidationError(f"Unsupported document type: {path.suffix}", field="document")
        if len(self.find_uploaded()) >= MAX_DOCUMENTS:
            raise ValidationError("Maximum number of invoice documents reached", field="document")

        stem = re.sub(r"[^a-z0-9_]", "", convert_to_ascii_filename(path.stem).lower())
        if not stem:
            raise ValidationError("Invalid document name", field="document")
        name = stem[:MAX_NAME_LENGTH] + path.suffix.lower()
        if name in {d.name for d in self.find_builtin()}:
            raise ValidationError(f"Document name {name} is reserved", field="document")

        target = FileHelper(self.upload_dir).get_data_directory() / name
        target.write_bytes(content)
        logger.info(f"Uploaded invoice document {name}")
        return InvoiceDocument(name=name, path=target)

    def delete(self, document: InvoiceDocument, used_by: list[str]) -> None:
        """Delete an uploaded document.

        Args:
            document: Document to delete
            used_by: Renderer names referenced by invoice templates

        Raises:
            ValidationError: Built-in or used document
        """
        if document.built_in or document.name in {d.name for d in self.find_builtin()}:
            raise ValidationError("Document is built-in and cannot be deleted", field="document")
        if document.name in used_by:
            raise ValidationError("Document is used and cannot be deleted", field="document")
        if document.path is None:
            raise NotFoundError(f"Document {document.name} not found")
        FileHelper(self.upload_dir).remove_file(document.path)
