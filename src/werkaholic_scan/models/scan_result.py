from dataclasses import dataclass, field
from enum import Enum


class Condition(Enum):
    NEW = "Neu"
    VERY_GOOD = "Sehr gut"
    GOOD = "Gut"
    ACCEPTABLE = "Akzeptabel"
    DEFECTIVE = "Defekt"

    @classmethod
    def parse(cls, label: str | None) -> "Condition":
        """Map a classifier condition label (German, English or enum name) to a Condition."""
        key = (label or "").strip().lower()
        if not key:
            return cls.GOOD
        for condition in cls:
            if key in (condition.value.lower(), condition.name.lower()):
                return condition
        return _ENGLISH_LABELS.get(key.replace("_", " "), cls.GOOD)


_ENGLISH_LABELS = {
    "new": Condition.NEW,
    "very good": Condition.VERY_GOOD,
    "good": Condition.GOOD,
    "acceptable": Condition.ACCEPTABLE,
    "defective": Condition.DEFECTIVE,
}


def _str_tuple(value) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


@dataclass(frozen=True)
class ScanResult:
    """A resale listing produced by the vision classifier for one still frame."""
    detected: bool
    title: str
    price_estimate: str
    condition: Condition
    category: str
    description: str
    keywords: tuple[str, ...] = ()
    reasoning: str = ""
    brand: str = ""
    model: str = ""
    price_suggestions: tuple[str, ...] = field(default=())
    target_platforms: tuple[str, ...] = field(default=())

    @classmethod
    def from_payload(cls, payload: dict) -> "ScanResult":
        """Build a result from the classifier's JSON object."""
        return cls(
            detected=bool(payload.get("item_detected", False)),
            title=str(payload.get("title") or ""),
            price_estimate=str(payload.get("price_estimate") or ""),
            condition=Condition.parse(payload.get("condition")),
            category=str(payload.get("category") or ""),
            description=str(payload.get("description") or ""),
            keywords=_str_tuple(payload.get("keywords")),
            reasoning=str(payload.get("reasoning") or ""),
            brand=str(payload.get("brand") or ""),
            model=str(payload.get("model") or ""),
            price_suggestions=_str_tuple(payload.get("price_suggestions")),
            target_platforms=_str_tuple(payload.get("target_platforms")),
        )

    def to_payload(self) -> dict:
        return {
            "item_detected": self.detected,
            "title": self.title,
            "price_estimate": self.price_estimate,
            "condition": self.condition.value,
            "category": self.category,
            "description": self.description,
            "keywords": list(self.keywords),
            "reasoning": self.reasoning,
            "brand": self.brand,
            "model": self.model,
            "price_suggestions": list(self.price_suggestions),
            "target_platforms": list(self.target_platforms),
        }


@dataclass(frozen=True)
class LastSuccess:
    """The most recent accepted result, used for duplicate suppression."""
    title: str
    timestamp_ms: int
