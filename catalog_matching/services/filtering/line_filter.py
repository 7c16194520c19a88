"""Non-product line filter.

Invoices carry plenty of lines that are not purchasable products: transport
document references, legal disclaimers, payment instructions, environmental
fee notices, shipping surcharges. They must never reach the catalog.

Key Components:
    - NON_PRODUCT_PATTERNS: Descriptions that are never products
    - LineFilterVerdict: Accept/reject result with a reason code
    - evaluate_line(): Full verdict for one invoice line
    - is_valid_product_line(): Boolean shortcut used by the line processor
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Pattern
import re
import structlog

from catalog_matching.models.line_item import InvoiceLineItem

logger = structlog.get_logger(__name__)

SKIPPED_LINE_NOTE = "Line not recognised as a product"


def _compile(*patterns: str) -> List[Pattern[str]]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


NON_PRODUCT_PATTERNS: List[Pattern[str]] = _compile(
    # Transport documents
    r"\bddt\b.*\d+",
    r"\bdoc\w*\s+di\s+trasporto\b",
    r"\bbolla\s+di\s+accompagnamento\b",
    r"\bdelivery\s+note\b",
    # Regulatory citations
    r"\bassolve\s+agli\s+obblighi\b",
    r"\bdecreto\b",
    r"\bd\.?\s?lgs\.?\b",
    r"\bd\.?m\.?\b",
    r"\blegge\b",
    r"\bnormativa\b",
    r"\bentrato\s+in\s+vigore\b",
    r"\bd\.?p\.?r\.?\s+633/72\b",
    r"\bd\.?p\.?r\.?\s+633/92\b",
    # Legal and fiscal notes
    r"\bnon\s+si\s+accettano\s+reclami\b",
    r"\btrascorsi\s+\d+\s+g(?:iorni)?\b",
    r"\bricevimento\s+della\s+merce\b",
    r"\biva\s+non\s+soggett[ia]\b",
    r"\bart(?:icol[oi]\s*|\.\s*|\s+)\d+",
    r"\bcomma\s+\d+",
    r"\bai\s+sensi\b",
    r"\baut\.?\s+d'imposta\b",
    r"\bnr\s+iscr\b",
    r"\bcodice\s+[a-z0-9]+\b",
    # Payment and banking
    r"\bpagamento\b",
    r"\bscadenza\b",
    r"\bbonifico\b",
    r"\bcoordinate\s+bancarie\b",
    r"\biban\b",
    r"\bpayment\s+terms\b",
    r"\bbank\s+transfer\b",
    # Environmental fees and packaging
    r"\bcontributo\s+ambientale\s+conai\b",
    r"\bconai\s+assolto\b",
    r"\bimb\.?\s+non\s+soggett[io]\b",
)

# Informative notes and surcharges; rejected even when priced
INFORMATIVE_NOTE_PATTERNS: List[Pattern[str]] = _compile(
    r"\brif(?:\.|erimento\b|\s*:)",
    r"\bvedi\b",
    r"\bnota\b",
    r"\bcontributo\b",
    r"\bassolto\b",
    r"\bove\s+dovuto\b",
    r"\bspese\s+di\s+(?:trasporto|spedizione|incasso)\b",
    r"\bspese\s+(?:accessorie|bancarie|amministrative)\b",
    r"\bcontributo\s+spese\b",
    r"\bimballaggio\b",
    r"\bimballo\b",
    r"\bshipping\s+(?:costs?|charges?)\b",
    r"\btransport\s+costs?\b",
)

_PRODUCT_CODE = re.compile(r"\b(?=[a-z0-9]*\d)(?=[a-z0-9]*[a-z])[a-z0-9]{3,}\b", re.IGNORECASE)
_UNIT_OF_MEASURE = re.compile(r"\b(?:pz|pezzi|kg|lt|mt|cm|mm|gr|ml|conf)\b", re.IGNORECASE)
_DIMENSIONS = re.compile(r"\d+(?:[.,]\d+)?\s*x\s*\d+", re.IGNORECASE)
_MATERIALS = re.compile(
    r"\b(?:acciaio|inox|plastica|legno|carta|vetro|alluminio|ferro|ottone|rame|pvc|gomma)\b",
    re.IGNORECASE,
)

MIN_PLAUSIBLE_LENGTH = 6
MAX_PLAUSIBLE_LENGTH = 99


@dataclass
class LineFilterVerdict:
    """Result of the non-product line filter.

    Attributes:
        accepted: Whether the line should be matched as a product
        reason: Reason code when rejected (None when accepted)
    """
    accepted: bool
    reason: Optional[str] = None


def product_signals(description: str) -> List[str]:
    """Independent "looks like a product" signals found in a description."""
    signals = []
    if MIN_PLAUSIBLE_LENGTH <= len(description) <= MAX_PLAUSIBLE_LENGTH:
        signals.append("plausible_length")
    if _PRODUCT_CODE.search(description):
        signals.append("product_code")
    if _UNIT_OF_MEASURE.search(description):
        signals.append("unit_of_measure")
    if _DIMENSIONS.search(description):
        signals.append("dimensions")
    if _MATERIALS.search(description):
        signals.append("material")
    return signals


def _first_match(description: str, patterns: List[Pattern[str]]) -> Optional[str]:
    for pattern in patterns:
        if pattern.search(description):
            return pattern.pattern
    return None


def evaluate_line(line: InvoiceLineItem) -> LineFilterVerdict:
    """Decide whether an invoice line describes a purchasable product.

    Rules, in order:
        1. Empty or blank description → rejected
        2. Any non-product or informative-note pattern → rejected,
           regardless of price and quantity
        3. Zero price → accepted only with at least two product signals
        4. Price but zero quantity → accepted only when the description
           has a plausible length plus one more product signal
        5. Otherwise accepted

    Args:
        line: Invoice line as produced by the invoice parser

    Returns:
        LineFilterVerdict
    """
    description = (line.description or "").strip()
    if not description:
        return LineFilterVerdict(accepted=False, reason="empty_description")

    if _first_match(description, NON_PRODUCT_PATTERNS):
        return LineFilterVerdict(accepted=False, reason="non_product_pattern")
    if _first_match(description, INFORMATIVE_NOTE_PATTERNS):
        return LineFilterVerdict(accepted=False, reason="informative_note")

    has_price = line.unit_price > 0 or (line.total_price or Decimal("0")) > 0
    has_quantity = line.quantity > 0
    signals = product_signals(description)

    if not has_price:
        if len(signals) >= 2:
            return LineFilterVerdict(accepted=True)
        return LineFilterVerdict(accepted=False, reason="zero_price_note")

    if not has_quantity:
        if "plausible_length" in signals and len(signals) >= 2:
            return LineFilterVerdict(accepted=True)
        return LineFilterVerdict(accepted=False, reason="zero_quantity_not_product")

    return LineFilterVerdict(accepted=True)


def is_valid_product_line(line: InvoiceLineItem) -> bool:
    """True when the line should be matched against the catalog."""
    verdict = evaluate_line(line)
    if not verdict.accepted:
        logger.debug(
            "line_rejected",
            line_number=line.line_number,
            description=line.description,
            reason=verdict.reason,
        )
    return verdict.accepted
