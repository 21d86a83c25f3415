import os
from typing import Protocol

from ..config import CLASSIFIERS, Settings
from ..models.scan_result import ScanResult
from ..sources.frames import Frame
from .cache import CachingClassifier


class VisionClassifier(Protocol):
    async def classify(self, frame: Frame) -> ScanResult:
        """Return a listing for the frame, or raise RateLimitedError / ClassifierError."""
        ...


def build_classifier(
    settings: Settings, name: str | None = None, use_cache: bool = True
) -> VisionClassifier:
    """Create the configured classifier backend, optionally behind a result cache."""
    name = name or settings.classifier
    if name not in CLASSIFIERS:
        raise ValueError(f"Unknown classifier '{name}' (expected one of: {', '.join(CLASSIFIERS)})")

    if name == "bedrock":
        from .bedrock import BedrockClassifier

        classifier = BedrockClassifier(region=settings.aws_region, model_id=settings.bedrock_model_id)
    elif name == "gemini":
        from .gemini import GeminiClassifier

        api_key = os.environ.get(settings.gemini_api_key_env, "")
        if not api_key:
            raise ValueError(f"Set {settings.gemini_api_key_env} to use the Gemini classifier")
        classifier = GeminiClassifier(api_key=api_key, model=settings.gemini_model)
    else:
        from .mock import MockClassifier

        classifier = MockClassifier()

    if use_cache and settings.cache_ttl_seconds > 0:
        return CachingClassifier(classifier, ttl_seconds=settings.cache_ttl_seconds)
    return classifier
