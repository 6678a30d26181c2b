import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class ElevatorConfig:
    """
    Configuration for the elevator pipeline. This should be passed around explicitly.
    """
    # Gemini model used for every elevation request
    model_name: str = "gemini-1.5-flash"
    # Explicit key wins; otherwise the key is read from `api_key_env`
    api_key: Optional[str] = None
    api_key_env: str = "GEMINI_API_KEY"
    api_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    temperature: float = 0.7
    max_output_tokens: int = 2048

    # Timeouts in seconds
    api_timeout: float = 30.0

    # Retry policy for retryable API failures
    max_retries: int = 3
    retry_base_delay: float = 1.0

    # Upper bound on concurrent elevation requests per document
    max_concurrency: int = 4

    # One of: balanced, concise, comprehensive, educational
    strategy: str = "balanced"
    elevate_quotes: bool = True
    # Append the worked input/output pairs to the system instruction
    include_examples: bool = True

    # Length guard on the stripped input, checked before any model call
    min_input_chars: int = 3
    max_input_chars: int = 10000

    # When set, each run's ElevationReport is written to <report_dir>/<run_id>.json
    report_dir: Optional[str] = None
    log_level: str = "WARNING"

    def resolve_api_key(self) -> Optional[str]:
        if self.api_key:
            return self.api_key
        return os.environ.get(self.api_key_env) or None

    def as_dict(self):
        return dict(self.__dict__)
