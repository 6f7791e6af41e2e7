import math
import re
from typing import List, Optional

# Captura: 12,34 | 12.34 | 1.234,56 | 1,234.56 (normaliza depois)
PRICE_RE = re.compile(r"(\d{1,3}(?:[\.,]\d{3})*[\.,]\d{2})")
_WS_RE = re.compile(r"\s+")


def sanitize_decimal_br(raw: str) -> str:
    """Keep digits and the first comma; digits after later commas join the fraction."""
    s = str(raw or "").replace(".", ",")
    s = re.sub(r"[^0-9,]", "", s)
    parts = s.split(",")
    if len(parts) <= 1:
        return s
    return f"{parts[0]},{''.join(parts[1:])}"


def normalize_price_br(raw: str) -> str:
    s = _WS_RE.sub("", str(raw or "").strip())
    if not s:
        return ""
    # "." e "," juntos: "." é milhar e "," é decimal (1.234,56).
    # 1,234.56 vira 1,23456; limitação conhecida, não tentamos adivinhar o locale.
    if "," in s and "." in s:
        s = s.replace(".", "")
    elif "." in s:
        s = s.replace(".", ",", 1)
    return sanitize_decimal_br(s)


def extract_candidates(text: str) -> List[str]:
    """Price candidates found in OCR text, first-seen order, no duplicates."""
    t = _WS_RE.sub(" ", str(text or "")).strip()
    out: List[str] = []
    seen = set()
    for m in PRICE_RE.findall(t):
        p = normalize_price_br(m)
        if p and p not in seen:
            seen.add(p)
            out.append(p)
    return out


def parse_number_br(value: str) -> Optional[float]:
    # aceita vírgula decimal e ignora pontos (se vierem por engano)
    raw = str(value or "").strip().replace(".", "").replace(",", ".", 1)
    if not raw:
        return None
    try:
        n = float(raw)
    except ValueError:
        return None
    return n if math.isfinite(n) else None


def format_brl(value: float) -> str:
    s = f"{abs(value or 0.0):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"-R$ {s}" if value and value < 0 else f"R$ {s}"
