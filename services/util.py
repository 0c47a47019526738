# services/util.py

import os
import re

_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)*) ?([kKmMgGtTpP])?[iI]?[bB]?$")

_SIZE_MULTIPLIERS = {
    "":  1,
    "k": 1000,
    "m": 1000 ** 2,
    "g": 1000 ** 3,
    "t": 1000 ** 4,
    "p": 1000 ** 5,
}


def get_data_path():
    path = get_env('MAILBRIDGE_DATA_PATH')
    return path.strip() if path else 'data'

def get_env(env: str):
    return os.environ.get(env)


def parse_size(value: str | int) -> int:
    """
    Parse a human-readable size into bytes.

    Multipliers are decimal: ``"5k"`` → 5000, ``"10m"`` → 10000000.
    ``"1.5MB"`` and ``"10 kb"`` are accepted too.

    :raises ValueError: if *value* is not a valid size.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid size: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"invalid size: {value!r}")
        return value
    m = _SIZE_RE.match(str(value).strip())
    if not m:
        raise ValueError(f"invalid size: {value!r}")
    number, unit = m.group(1), (m.group(2) or "").lower()
    try:
        size = float(number)
    except ValueError:
        raise ValueError(f"invalid size: {value!r}")
    return int(size * _SIZE_MULTIPLIERS[unit])
