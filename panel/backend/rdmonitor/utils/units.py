"""Human-readable byte sizes (decimal units, like the platform byte count formatter)."""

BYTES_PER_GB = 1073741824.0

_UNITS = ("KB", "MB", "GB", "TB")


def format_bytes(count: int) -> str:
    if count <= 0:
        return "0 B"
    if count < 1000:
        return f"{count} B"
    value = float(count)
    unit = "B"
    for unit in _UNITS:
        value /= 1000.0
        if value < 1000.0:
            break
    # KB/MB drop decimals, larger units keep up to two
    if unit in ("KB", "MB"):
        return f"{value:.0f} {unit}"
    return f"{value:.2f}".rstrip("0").rstrip(".") + f" {unit}"


def bytes_to_gb(count: int | float) -> float:
    """Binary gigabytes (1024^3), the unit host quotas are reported in."""
    return count / BYTES_PER_GB
