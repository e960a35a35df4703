# wholesale_pos/utils/validators.py
import math


# ---- Numeric parsing & validators ----

def try_parse_float(x):
    """
    Best-effort parse to a finite float.

    Returns:
        (ok: bool, value: float|None)

    ok == False means parsing failed (or gave NaN/inf) and value is None.
    """
    try:
        val = float(x)
    except (TypeError, ValueError):
        return False, None
    if not math.isfinite(val):
        return False, None
    return True, val


def lenient_price(x) -> float:
    """
    Free-text price from a form cell: unparseable or negative becomes 0.
    """
    ok, val = try_parse_float(x)
    if not ok or val is None or val < 0:
        return 0.0
    return val
