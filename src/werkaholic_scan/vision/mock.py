import asyncio
import logging

from ..models.scan_result import Condition, ScanResult
from ..sources.frames import Frame

logger = logging.getLogger(__name__)

# Canned listings keyed by a word that must appear in the frame name
_LISTINGS = {
    ("werkzeug", "tool"): ScanResult(
        detected=True,
        title="Werkzeugkoffer mit 150-teiligem Sortiment",
        price_estimate="85€ - 120€",
        condition=Condition.VERY_GOOD,
        category="Werkzeuge",
        description="Werkzeugkoffer mit komplettem Sortiment: Schraubendreher, Zangen, Hammer.",
        keywords=("Werkzeugkoffer", "150-teilig", "Schraubendreher", "Zangen", "Heimwerker"),
        reasoning="Umfangreiches Sortiment in gutem Zustand.",
    ),
    ("elektronik", "speaker"): ScanResult(
        detected=True,
        title="Bluetooth Lautsprecher mit NFC und 20h Akku",
        price_estimate="45€ - 65€",
        condition=Condition.GOOD,
        category="Elektronik",
        description="Kompakter Bluetooth Lautsprecher, NFC, bis zu 20 Stunden Akkulaufzeit.",
        keywords=("Bluetooth Lautsprecher", "NFC", "wasserdicht", "20h Akku"),
        reasoning="Marktwert vergleichbarer Modelle mit ähnlicher Ausstattung.",
    ),
    ("messer", "knife"): ScanResult(
        detected=True,
        title="Küchenmesser Set 5-teilig professionell",
        price_estimate="30€ - 45€",
        condition=Condition.NEW,
        category="Küche",
        description="5-teiliges Küchenmesser Set aus rostfreiem Edelstahl.",
        keywords=("Küchenmesser Set", "5-teilig", "Edelstahl", "Kochmesser"),
        reasoning="Neuwertig, hochwertige Verarbeitung.",
    ),
    ("deko", "shelf"): ScanResult(
        detected=True,
        title="Vintage Holzregal mit industrial Look",
        price_estimate="60€ - 85€",
        condition=Condition.GOOD,
        category="Dekoration",
        description="Vintage Holzregal im industrial Style, 4 Ablagen, Metallkonstruktion.",
        keywords=("Vintage Regal", "Holz", "industrial", "Dekoration"),
        reasoning="Handwerkliche Qualität und gefragter Stil.",
    ),
    ("kleidung", "jacket"): ScanResult(
        detected=True,
        title="Herren Lederjacke braun Gr. L",
        price_estimate="70€ - 90€",
        condition=Condition.GOOD,
        category="Kleidung",
        description="Echte Lederjacke in braun, Größe L, mit Innentaschen.",
        keywords=("Lederjacke", "braun", "Herren", "Gr. L"),
        reasoning="Echtes Leder in gepflegtem Zustand.",
    ),
    ("empty", "leer"): ScanResult(
        detected=False,
        title="",
        price_estimate="",
        condition=Condition.GOOD,
        category="",
        description="",
    ),
}

_DEFAULT = ScanResult(
    detected=True,
    title="Interessantes Objekt - bitte genauere Beschreibung",
    price_estimate="25€ - 50€",
    condition=Condition.GOOD,
    category="Sonstiges",
    description="Ein interessantes Fundstück mit leichten Gebrauchsspuren.",
    keywords=("Fundstück", "gebraucht", "dekorativ"),
    reasoning="Standardbewertung für nicht klassifizierte Gegenstände.",
)


class MockClassifier:
    """Offline classifier returning canned listings, chosen by the frame name."""

    def __init__(self, delay_seconds: float = 1.5):
        self.delay_seconds = delay_seconds

    async def classify(self, frame: Frame) -> ScanResult:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        name = frame.name.lower()
        for words, listing in _LISTINGS.items():
            if any(w in name for w in words):
                return listing
        logger.debug(f"No canned listing for '{frame.name}', using default")
        return _DEFAULT
