"""Shape and numeric validation for meter frames."""

from __future__ import annotations

import math
import re

from errors import FrameFormatError, NumericFormatError
from models.records import FIELD_NAMES, Reading

# Plain decimal or exponent notation. ``float()`` alone would also take
# digit separators ("1_024.3") and spelled-out values ("nan", "infinity").
_NUMBER = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


class RecordParser:
    """Pure parsing component that can be unit tested in isolation.

    Only the shape (field count) and the numeric format of each field are
    checked. Negative or extreme values are legitimate meter output and pass.
    """

    def __init__(self, separator: str = ",") -> None:
        self.separator = separator

    def parse(self, frame: str) -> Reading:
        fields = frame.strip().split(self.separator)
        if len(fields) != len(FIELD_NAMES):
            raise FrameFormatError(frame, len(fields), expected=len(FIELD_NAMES))

        values: list[float] = []
        for index, (name, raw) in enumerate(zip(FIELD_NAMES, fields)):
            if _NUMBER.fullmatch(raw.strip()) is None:
                raise NumericFormatError(frame, index, name, raw)
            value = float(raw)
            # Overflow such as "1e999" matches the pattern but is not finite.
            if not math.isfinite(value):
                raise NumericFormatError(frame, index, name, raw)
            values.append(value)

        return Reading(*values)
