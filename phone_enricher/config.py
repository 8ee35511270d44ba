from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    log_level: str = "INFO"
    output_dir: Path = Path(".")

    # Phone locale (Mexico by default)
    country_code: str = "52"
    national_digits: int = 10
    phone_label_keyword: str = "Teléfono"

    # Worker pool
    concurrency_cap: int = 3
    job_timeout: float = 30.0
    pacing_delay: float = 1.0

    # Browser
    headless: bool = True
    chrome_path: str = ""
    navigation_timeout: float = 20.0
    settle_delay: float = 2.0

    # Process-level pipeline
    collector_command: list[str] = ["./mapsscrap-1"]
    enrichment_command: list[str] = []
    collection_timeout: float = 300.0
    full_pipeline_timeout: float = 600.0
    heartbeat_interval: float = 30.0

    broadcast_queue_size: int = 100
