"""Document store over a directory of Markdown files."""

import os
import shutil
import tempfile
from pathlib import Path


class Vault:
    """Markdown documents under a root directory.

    Documents are addressed by their POSIX path relative to the root.
    """

    EXTENSION = ".md"

    def __init__(self, root: Path):
        self.root = Path(root)

    def list_documents(self) -> list[str]:
        """All Markdown documents, sorted, skipping hidden directories."""
        documents = []
        for path in self.root.rglob(f"*{self.EXTENSION}"):
            relative = path.relative_to(self.root)
            if any(part.startswith(".") for part in relative.parts[:-1]):
                continue
            if path.is_file():
                documents.append(relative.as_posix())
        return sorted(documents)

    def read(self, document: str) -> str:
        """Read the full text of a document."""
        with open(self.root / document, encoding="utf-8", newline="") as f:
            return f.read()

    def write(self, document: str, text: str) -> None:
        """Overwrite a document, replacing the file only once fully written."""
        path = self.root / document
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(text)
            # mkstemp creates the file owner-only
            if path.exists():
                shutil.copymode(path, tmp_name)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
