"""Helpers for files written below the data directory."""

import logging
import re
import unicodedata
from pathlib import Path

logger = logging.getLogger(__name__)

# Letters that have no decomposition into base letter + accent
_TRANSLITERATIONS = {
    "ß": "ss",
    "Æ": "AE",
    "æ": "ae",
    "Ø": "O",
    "ø": "o",
    "Œ": "OE",
    "œ": "oe",
    "Þ": "TH",
    "þ": "th",
    "Đ": "D",
    "đ": "d",
    "Ł": "L",
    "ł": "l",
}


def convert_to_ascii_filename(filename: str) -> str:
    """Turn an arbitrary name into a safe ASCII filename.

    Accents are stripped, every run of characters other than letters, digits
    and dashes becomes a single underscore.

    Example:
        >>> convert_to_ascii_filename("Barß / laölala #   ld_ksjf 123 MyAwesome GmbH")
        'Barss_laolala_ld_ksjf_123_MyAwesome_GmbH'
    """
    value = "".join(_TRANSLITERATIONS.get(char, char) for char in filename)
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^A-Za-z0-9-]+", "_", value)
    return value.strip("_")


class FileHelper:
    """Resolve and clean up files inside the data directory."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def get_data_directory(self, subdirectory: str = "") -> Path:
        path = self.data_dir / subdirectory if subdirectory else self.data_dir
        path.mkdir(parents=True, exist_ok=True)
        return path

    def remove_file(self, path: Path) -> bool:
        """Delete a file that lives inside the data directory.

        Raises:
            ValueError: If the path points outside the data directory
        """
        path = Path(path).resolve()
        if self.data_dir.resolve() not in path.parents:
            raise ValueError(f"Refusing to delete file outside data directory: {path}")
        if not path.exists():
            return False
        path.unlink()
        logger.info(f"Removed file {path}")
        return True
