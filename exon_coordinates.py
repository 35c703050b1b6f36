#!/usr/bin/env python3
"""
Exon Coordinates Module
Loads FGFR1 ITD breakpoint exon windows from an annotated BED file
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)

FIVE_PRIME_LABEL = "exon-9-10"
THREE_PRIME_LABEL = "exon-18"


class MissingCoordinatesError(ValueError):
    """Raised when a required breakpoint exon could not be loaded"""


@dataclass(frozen=True)
class BreakpointWindow:
    """Closed genomic interval [start, end] spanning one breakpoint exon"""
    start: Optional[int] = None
    end: Optional[int] = None

    @property
    def is_complete(self) -> bool:
        return self.start is not None and self.end is not None

    def contains(self, position: int) -> bool:
        """Inclusive on both bounds"""
        if not self.is_complete:
            return False
        return self.start <= position <= self.end

    def __str__(self):
        return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class ExonCoordinates:
    """5' and 3' breakpoint windows used for ITD classification"""
    five_prime: BreakpointWindow
    three_prime: BreakpointWindow
    five_prime_label: str = FIVE_PRIME_LABEL
    three_prime_label: str = THREE_PRIME_LABEL


def _parse_bed_line(line: str):
    """Return (exon_label, start, end) or None for lines that carry no usable record"""
    fields = line.rstrip("\r\n").split("\t")
    if len(fields) < 4:
        return None

    annotation = fields[3].split(";")
    if len(annotation) < 3:
        return None

    try:
        start = int(fields[1])
        end = int(fields[2])
    except ValueError:
        return None

    return annotation[2], start, end


def load_exon_coordinates(bed_file: str,
                          five_prime_label: str = FIVE_PRIME_LABEL,
                          three_prime_label: str = THREE_PRIME_LABEL) -> ExonCoordinates:
    """
    Load the breakpoint exon windows from a BED file

    Column 4 of each record is a semicolon-delimited annotation whose third
    element is the exon label. When a label occurs more than once the last
    record wins.

    Args:
        bed_file: Path to breakpoint exon BED file
        five_prime_label: Exon label of the 5' breakpoint window
        three_prime_label: Exon label of the 3' breakpoint window

    Returns:
        ExonCoordinates with both windows complete

    Raises:
        OSError: If the file cannot be opened or read
        MissingCoordinatesError: If either label is absent or its window is invalid
    """
    windows: Dict[str, BreakpointWindow] = {}
    wanted = (five_prime_label, three_prime_label)

    with open(bed_file, 'r', encoding='utf-8', errors='surrogateescape') as f:
        for line in f:
            if line.startswith("#") or not line.strip():
                continue

            record = _parse_bed_line(line)
            if record is None:
                continue

            exon_label, start, end = record
            if exon_label not in wanted:
                continue

            if exon_label in windows:
                logger.warning(f"Duplicate breakpoint exon {exon_label} in {bed_file}; "
                               f"replacing {windows[exon_label]} with {start}-{end}")
            windows[exon_label] = BreakpointWindow(start, end)

    missing = [label for label in wanted
               if label not in windows or not windows[label].is_complete]
    if missing:
        raise MissingCoordinatesError(
            f"BED file {bed_file} is missing required exon coordinates ({', '.join(missing)})")

    for label in wanted:
        window = windows[label]
        if window.start < 0 or window.end < window.start:
            raise MissingCoordinatesError(
                f"Invalid coordinates for {label} in {bed_file}: {window}")

    coords = ExonCoordinates(
        five_prime=windows[five_prime_label],
        three_prime=windows[three_prime_label],
        five_prime_label=five_prime_label,
        three_prime_label=three_prime_label
    )
    logger.debug(f"Loaded {five_prime_label}: {coords.five_prime}, "
                 f"{three_prime_label}: {coords.three_prime}")
    return coords
