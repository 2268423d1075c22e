from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "ai-car-diagnosis-api"
    log_level: str = "INFO"

    # upload limits
    max_image_mb: int = 10
    max_video_mb: int = 50

    # Generative API configuration
    llm_provider: str = "mock"  # "mock" | "gemini" | "openai"
    gemini_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    text_model: str = "gemini-1.5-pro"
    vision_model: str = "gemini-1.5-flash"
    llm_timeout_seconds: float = 30.0
    llm_temperature: float = 0.3
    llm_max_tokens: int = 1000

    # approximate conversion rate used for the INR estimate
    usd_to_inr_rate: float = 83.0

    # video audio heuristic
    audio_analysis_enabled: bool = True
    ffmpeg_binary: str = "ffmpeg"
    audio_max_seconds: int = 30


settings = Settings()
