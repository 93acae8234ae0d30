# src/gateway_dashboard/client/display.py

from typing import Any, Dict, Optional


def format_uptime(seconds: float) -> str:
    seconds = int(seconds or 0)
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    return " ".join(parts) or "0m"


def signal_quality(rsrp: float) -> str:
    if rsrp >= -80:
        return "Excellent"
    if rsrp >= -90:
        return "Good"
    if rsrp >= -100:
        return "Fair"
    if rsrp >= -110:
        return "Poor"
    return "No Signal"


def sinr_quality(sinr: float) -> str:
    if sinr >= 20:
        return "Excellent"
    if sinr >= 13:
        return "Good"
    if sinr >= 0:
        return "Fair"
    return "Poor"


def summarize_signal(payload: Optional[Dict[str, Any]]) -> str:
    """One-line summary of a /signal or /gateway payload."""
    if not payload:
        return "no data"
    signal = payload.get("signal") or {}
    parts = []
    for radio in ("5g", "4g"):
        info = signal.get(radio)
        if not info:
            continue
        rsrp = info.get("rsrp")
        sinr = info.get("sinr")
        bands = ",".join(info.get("bands") or [])
        text = f"{radio.upper()} [{bands}] bars={info.get('bars')}"
        if rsrp is not None:
            text += f" rsrp={rsrp} ({signal_quality(rsrp)})"
        if sinr is not None:
            text += f" sinr={sinr} ({sinr_quality(sinr)})"
        parts.append(text)
    registration = (signal.get("generic") or {}).get("registration")
    if registration:
        parts.append(f"reg={registration}")
    return " | ".join(parts) or "no signal data"
