"""Rendering and persistence of generated codes.

Codes are rendered either as plain text (one code per line) or as CSV with
a single "codes" column, and written to disk atomically.
"""

import csv
import io
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, Literal

# Configure logging
logger = logging.getLogger(__name__)

Format = Literal["plain", "csv"]

CSV_HEADER = "codes"


class OutputError(Exception):
    """Raised when codes cannot be written to their destination."""

    pass


class Renderer:
    """Renders code lists for files and HTTP responses."""

    def render_plain_text(self, codes: Iterable[str]) -> tuple[str, str]:
        """Render codes one per line.

        Returns:
            Tuple of (content, content_type)
        """
        content = "".join(f"{code}\n" for code in codes)
        return content, "text/plain; charset=utf-8"

    def render_csv(self, codes: Iterable[str]) -> tuple[str, str]:
        """Render codes as CSV with a "codes" header row.

        Returns:
            Tuple of (content, content_type)
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow([CSV_HEADER])
        writer.writerows([code] for code in codes)
        return buffer.getvalue(), "text/csv; charset=utf-8"

    def render(self, codes: Iterable[str], format_type: Format) -> tuple[str, str]:
        if format_type == "csv":
            return self.render_csv(codes)
        return self.render_plain_text(codes)

    def determine_format(self, accept_header: str | None) -> Format:
        """Determine output format based on Accept header.

        Args:
            accept_header: Value of the Accept HTTP header (or None)

        Returns:
            "csv" if client explicitly accepts CSV, "plain" otherwise
        """
        if accept_header is None:
            return "plain"

        if "text/csv" in accept_header.lower():
            return "csv"

        return "plain"

    def format_for_path(self, path: str) -> Format:
        """Pick CSV for files ending in .csv, plain text otherwise."""
        return "csv" if path.endswith(".csv") else "plain"

    def write_codes(self, path: str, codes: Iterable[str]) -> Format:
        """Write codes to path in the format implied by its extension.

        The content goes to a temporary file next to the destination which is
        then renamed over it, so readers never see a partially written file.

        Args:
            path: Destination file path
            codes: Codes to write

        Returns:
            The format that was written

        Raises:
            OutputError: If the file cannot be written
        """
        format_type = self.format_for_path(path)
        content, _ = self.render(codes, format_type)
        destination = Path(path)

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=destination.parent, prefix=f".{destination.name}.", suffix=".tmp"
            )
        except OSError as e:
            logger.error(f"Cannot prepare output file {path}: {e}")
            raise OutputError(f"Cannot prepare output file {path}: {e}")

        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
            os.replace(tmp_path, destination)
        except OSError as e:
            logger.error(f"Failed to write codes to {path}: {e}")
            Path(tmp_path).unlink(missing_ok=True)
            raise OutputError(f"Failed to write codes to {path}: {e}")

        logger.info(f"Codes written to {path} ({format_type})")
        return format_type
