import json
from dataclasses import dataclass
from pathlib import Path


@dataclass
class Settings:
    scan_interval_ms: int = 18000
    dwell_ms: int = 4000
    duplicate_signal_ms: int = 2000
    duplicate_window_ms: int = 30000
    duplicate_overlap: float = 0.6
    error_clear_ms: int = 3000
    free_scan_limit: int = 11
    classifier: str = "bedrock"
    aws_region: str = "us-east-1"
    bedrock_model_id: str = "us.anthropic.claude-sonnet-4-20250514-v1:0"
    gemini_model: str = "gemini-2.5-flash"
    gemini_api_key_env: str = "GEMINI_API_KEY"
    cache_ttl_seconds: float = 3600
    quota_path: str = "data/quota.json"
    history_path: str = "data/history.jsonl"
    user_id: str = "local"


CLASSIFIERS = ("bedrock", "gemini", "mock")


def load_settings(path: str = "config/settings.json") -> Settings:
    """Load scanner settings from JSON file."""
    filepath = Path(path)
    if not filepath.exists():
        return Settings()

    with open(filepath) as f:
        data = json.load(f)

    settings = Settings(**{k: v for k, v in data.items() if hasattr(Settings, k)})
    if settings.classifier not in CLASSIFIERS:
        raise ValueError(
            f"Unknown classifier '{settings.classifier}' in {filepath} "
            f"(expected one of: {', '.join(CLASSIFIERS)})"
        )
    return settings
