from typing import Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class S3Config(BaseSettings):
    """S3 configuration"""

    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: str = "us-east-1"
    bucket_name: str = "dta-root"

    model_config = SettingsConfigDict(
        env_prefix="S3_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class BedrockConfig(BaseSettings):
    """Amazon Bedrock configuration (chat + embedding models)."""

    region: str = Field(
        default="us-east-1",
        validation_alias="BEDROCK_REGION",
    )
    model_id: str = Field(
        default="amazon.nova-micro-v1:0",
        validation_alias="BEDROCK_MODEL_ID",
    )
    analysis_model_id: Optional[str] = Field(
        default=None,
        validation_alias="BEDROCK_ANALYSIS_MODEL_ID",
        description="Optional cheaper model for per-utterance analysis calls.",
    )
    embedding_model_id: str = Field(
        default="amazon.titan-embed-text-v2:0",
        validation_alias="BEDROCK_EMBEDDING_MODEL_ID",
    )
    max_tokens: int = Field(
        default=300,
        validation_alias="BEDROCK_MAX_TOKENS",
        ge=1,
        le=4096,
    )
    temperature: float = Field(
        default=0.1,
        validation_alias="BEDROCK_TEMPERATURE",
        ge=0.0,
        le=1.0,
    )
    top_p: float = Field(
        default=0.95,
        validation_alias="BEDROCK_TOP_P",
        ge=0.0,
        le=1.0,
    )
    api_key: SecretStr | None = Field(
        default=None,
        validation_alias="BEDROCK_API_KEY",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class HumeConfig(BaseSettings):
    """Hume batch API configuration for voice prosody analysis."""

    api_key: SecretStr | None = None
    endpoint: str = "https://api.hume.ai/v0/batch/jobs"
    request_timeout_seconds: float = Field(default=30.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="HUME_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class TranscribeConfig(BaseSettings):
    """Amazon Transcribe (batch) configuration."""

    language_code: str = "en-US"
    output_bucket: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="TRANSCRIBE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class PollingConfig(BaseSettings):
    """Polling policy for long-running analysis jobs."""

    interval_seconds: float = Field(default=5.0, ge=0.0)
    video_max_attempts: int = Field(default=60, ge=1)
    audio_max_attempts: int = Field(default=60, ge=1)
    transcribe_max_attempts: int = Field(default=60, ge=1)
    pool_size: int = Field(
        default=4,
        ge=1,
        description="Maximum number of status checks in flight at once.",
    )
    duplicate_policy: Literal["allow", "reject"] = Field(
        default="allow",
        description=(
            "What to do when a job is submitted for a logical key that already "
            "has one outstanding: 'allow' runs both, 'reject' raises."
        ),
    )

    model_config = SettingsConfigDict(
        env_prefix="POLL_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class RetrievalConfig(BaseSettings):
    """Similarity index configuration."""

    relevance_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    max_results: int = Field(default=5, ge=1)
    max_chars_per_chunk: int = Field(default=2048, ge=64)
    deletion_enabled: bool = True

    model_config = SettingsConfigDict(
        env_prefix="RETRIEVAL_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Application settings"""

    app_name: str = "Digital Therapy Assistant Backend"
    app_version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_file: str = "logs/app.log"
    analysis_log_file: str = "logs/analysis_pipeline.log"

    # S3
    s3: S3Config = Field(default_factory=S3Config)

    # Bedrock
    bedrock: BedrockConfig = Field(default_factory=BedrockConfig)

    # Hume
    hume: HumeConfig = Field(default_factory=HumeConfig)

    # Transcribe
    transcribe: TranscribeConfig = Field(default_factory=TranscribeConfig)

    # Job polling
    polling: PollingConfig = Field(default_factory=PollingConfig)

    # Retrieval
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
