import logging
from typing import Sequence

from .config import LOOKAHEAD_WINDOW
from .models import PlateMatch, Token, TokenShape
from .validator import PlateValidator

logger = logging.getLogger(__name__)

S = TokenShape


class PlateReconstructor:
    """
    Assemble a KA plate out of recognizer tokens.

    Tokens are classified once; the scan then goes left to right and, at
    each index, tries the assembly rules in a fixed priority order. The
    first assembly that validates against the plate grammar is returned.
    """

    def __init__(self, window: int = LOOKAHEAD_WINDOW):
        if window < 1:
            raise ValueError(f"window must be >= 1, got {window}")
        self.window = window

    @staticmethod
    def classify_all(tokens: Sequence[str]) -> list[Token]:
        return [PlateValidator.classify(t, i) for i, t in enumerate(tokens)]

    def find_plate(self, tokens: Sequence[str]) -> PlateMatch | None:
        classified = self.classify_all(tokens)
        for i in range(len(classified)):
            match = self._match_at(classified, i)
            if match:
                logger.debug(f"Plate {match.plate} assembled from tokens {list(match.source_indices)}")
                return match
        return None

    # ------------------------------------------------------------------
    # Assembly rules
    # ------------------------------------------------------------------

    def _match_at(self, tokens: list[Token], i: int) -> PlateMatch | None:
        t = tokens[i]

        # Whole plate in one token
        plate = t.reading(S.FULL_PLATE)
        if plate:
            return PlateMatch(plate, (i,))

        # "KA51" + lookahead
        district = t.reading(S.DISTRICT)
        if district:
            match = self._continue_district(tokens, district, (i,), i + 1, i + self.window)
            if match:
                return match

        # "KA" "51" + lookahead, one token wider
        if t.shape is S.KA_LITERAL and i + 1 < len(tokens):
            digits = tokens[i + 1].reading(S.TWO_DIGITS)
            if digits:
                match = self._continue_district(
                    tokens, "KA" + digits, (i, i + 1), i + 2, i + self.window + 1
                )
                if match:
                    return match

        # "KA51AK" "4247"
        head = t.reading(S.DISTRICT_SERIES)
        if head and i + 1 < len(tokens):
            number = tokens[i + 1].reading(S.FOUR_DIGITS)
            if number:
                match = self._validated(head + number, (i, i + 1))
                if match:
                    return match

        # "AK4247" after a district
        tail = t.reading(S.SERIES_NUMBER)
        if tail:
            match = self._district_before(tokens, i, tail, (i,))
            if match:
                return match

        # "4247" after district and series
        number = t.reading(S.FOUR_DIGITS)
        if number and i >= 1:
            series = tokens[i - 1].reading(S.SERIES)
            if series:
                match = self._district_before(tokens, i - 1, series + number, (i - 1, i))
                if match:
                    return match

        return None

    def _continue_district(
        self,
        tokens: list[Token],
        district: str,
        indices: tuple[int, ...],
        start: int,
        stop: int,
    ) -> PlateMatch | None:
        """Look in tokens[start..stop] for the series and number following ``district``."""
        last = min(stop, len(tokens) - 1)
        for j in range(start, last + 1):
            tj = tokens[j]

            tail = tj.reading(S.SERIES_NUMBER) or tj.text
            match = self._validated(district + tail, indices + (j,))
            if match:
                return match

            series = tj.reading(S.SERIES)
            if series and j + 1 <= last:
                number = tokens[j + 1].reading(S.FOUR_DIGITS)
                if number:
                    match = self._validated(district + series + number, indices + (j, j + 1))
                    if match:
                        return match
        return None

    @staticmethod
    def _district_before(
        tokens: list[Token], i: int, tail: str, indices: tuple[int, ...]
    ) -> PlateMatch | None:
        """Find a district in the one or two tokens before index ``i``."""
        if i >= 1:
            district = tokens[i - 1].reading(S.DISTRICT)
            if district:
                match = PlateReconstructor._validated(district + tail, (i - 1,) + indices)
                if match:
                    return match
        if i >= 2 and tokens[i - 2].shape is S.KA_LITERAL:
            digits = tokens[i - 1].reading(S.TWO_DIGITS)
            if digits:
                match = PlateReconstructor._validated("KA" + digits + tail, (i - 2, i - 1) + indices)
                if match:
                    return match
        return None

    @staticmethod
    def _validated(candidate: str, indices: tuple[int, ...]) -> PlateMatch | None:
        plate = PlateValidator.resolve(candidate)
        if plate:
            return PlateMatch(plate, indices)
        return None


def find_plate(tokens: Sequence[str]) -> PlateMatch | None:
    """Module-level shortcut using the default look-ahead window."""
    return PlateReconstructor().find_plate(tokens)
