import re
from itertools import combinations

from .config import (
    KA_VEHICLE_PATTERN,
    CONFUSION_MAP,
    MAX_VARIANTS,
    MAX_CONFUSABLE_POSITIONS,
)
from .models import Token, TokenShape

# Shape patterns in classification priority order
SHAPE_PATTERNS = (
    (TokenShape.FULL_PLATE, re.compile(KA_VEHICLE_PATTERN)),
    (TokenShape.DISTRICT_SERIES, re.compile(r"^KA\d{2}[A-Z]{1,2}$")),
    (TokenShape.DISTRICT, re.compile(r"^KA\d{2}$")),
    (TokenShape.KA_LITERAL, re.compile(r"^KA$")),
    (TokenShape.SERIES_NUMBER, re.compile(r"^[A-Z]{1,2}\d{4}$")),
    (TokenShape.SERIES, re.compile(r"^[A-Z]{1,2}$")),
    (TokenShape.TWO_DIGITS, re.compile(r"^\d{2}$")),
    (TokenShape.FOUR_DIGITS, re.compile(r"^\d{4}$")),
)


class PlateValidator:
    _plate_re = re.compile(KA_VEHICLE_PATTERN)

    @staticmethod
    def is_plate(text: str) -> bool:
        """Check ``text`` against the anchored KA plate grammar."""
        return bool(PlateValidator._plate_re.match(text))

    @staticmethod
    def generate_variants(token: str, limit: int = MAX_VARIANTS) -> list[str]:
        """
        Confusion variants of ``token`` (O/0, I/1, Z/2, S/5, B/8).

        Variants come in order of how many characters were swapped: the
        token itself, then every single swap left to right, then pairs, and
        so on. Only the first MAX_CONFUSABLE_POSITIONS confusable positions
        are toggled and at most ``limit`` variants are returned.
        """
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        chars = list(token)
        positions = [i for i, c in enumerate(chars) if c in CONFUSION_MAP]
        positions = positions[:MAX_CONFUSABLE_POSITIONS]

        variants = [token]
        seen = {token}
        for n_swaps in range(1, len(positions) + 1):
            for combo in combinations(positions, n_swaps):
                if len(variants) >= limit:
                    return variants
                candidate = chars.copy()
                for idx in combo:
                    candidate[idx] = CONFUSION_MAP[candidate[idx]]
                variant = "".join(candidate)
                if variant not in seen:
                    seen.add(variant)
                    variants.append(variant)
        return variants

    @staticmethod
    def resolve(candidate: str) -> str | None:
        """Return ``candidate`` or its first variant that is a valid plate, else None."""
        if PlateValidator.is_plate(candidate):
            return candidate
        for variant in PlateValidator.generate_variants(candidate):
            if PlateValidator.is_plate(variant):
                return variant
        return None

    @staticmethod
    def classify(text: str, index: int) -> Token:
        """
        Tag ``text`` once with its shape and record every shape it can be
        read as, either directly or through a confusion variant.
        """
        variants = PlateValidator.generate_variants(text)
        readings = {}
        for shape, pattern in SHAPE_PATTERNS:
            for variant in variants:
                if pattern.match(variant):
                    readings[shape] = variant
                    break

        primary = TokenShape.OTHER
        for shape, pattern in SHAPE_PATTERNS:
            if pattern.match(text):
                primary = shape
                break
        return Token(text=text, index=index, shape=primary, readings=readings)
