from .masking import mask_code, scrub_code
from .money import amount_to_decimal, normalize_amount

__all__ = ["mask_code", "scrub_code", "normalize_amount", "amount_to_decimal"]
