import json

LISTING_PROMPT = """You are a professional resale assistant for "Werkaholic AI".
Analyze the photo and write a ready-to-post listing for German second-hand marketplaces
(eBay, eBay Kleinanzeigen, Facebook Marketplace). Write all listing text in German.

**Identification:**
- Be generous: anything visible that could be sold counts, even if incomplete or damaged
- Identify brand, model, material, size and distinguishing features as precisely as you can
- If nothing sellable is visible, set "item_detected" to false and leave the other fields short

**Pricing:**
- Realistic prices for the current German market, in Euro (e.g. "50€ - 70€")
- Account for condition, age and demand; when unsure, estimate conservatively
- Always explain the estimate in "reasoning"

**Listing:**
- "title": concise, search-optimized, at most 80 characters
- "condition": exactly one of "Neu", "Sehr gut", "Gut", "Akzeptabel", "Defekt"
- "description": professional sales text with bullet points
- "keywords": 5-10 search terms buyers would use

Respond ONLY with a single JSON object with these keys:
"item_detected" (bool), "title", "price_estimate", "price_suggestions" (list of 3),
"condition", "category", "subcategory", "brand", "model", "description",
"keywords" (list), "features" (list), "defects" (list), "reasoning",
"market_value", "target_platforms" (list).
No markdown, no explanation outside the JSON."""

REQUIRED_FIELDS = (
    "item_detected",
    "title",
    "price_estimate",
    "condition",
    "description",
    "keywords",
    "category",
    "reasoning",
)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence from a model response."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[-1] if "\n" in text else text[3:]
        if text.endswith("```"):
            text = text[:-3].strip()
    return text


def parse_listing(text: str) -> dict:
    """Parse the model's JSON answer. Raises ValueError if it is not a listing object."""
    data = json.loads(strip_code_fences(text))
    if not isinstance(data, dict):
        raise ValueError(f"Unexpected listing format: {type(data).__name__}")
    missing = [k for k in REQUIRED_FIELDS if k not in data]
    if missing and data.get("item_detected"):
        raise ValueError(f"Listing is missing fields: {', '.join(missing)}")
    return data
