from dataclasses import dataclass, field, asdict, fields
from typing import Optional
import os
import yaml
from pathlib import Path

from core.errors import ConfigurationError


@dataclass
class HashingConfig:
    """Configuration for local hashing and comparison"""
    hash_size: int = 8  # 8x8 grid -> 64 bit dHash
    similarity_threshold: float = 0.85
    allow_padded_comparisons: bool = True
    max_image_pixels: int = 50_000_000  # 50MP limit


@dataclass
class CandidateConfig:
    """Configuration for candidate selection"""
    cap: int = 100
    upload_cap: int = 50  # Smaller pool on the upload path


@dataclass
class AIJudgeConfig:
    """Configuration for the vision model client"""
    enabled: bool = True
    api_base: str = "https://api.groq.com/openai/v1"
    model: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    api_key_env: str = "GROQ_API_KEY"
    timeout_seconds: float = 20.0
    temperature: float = 1.0
    max_completion_tokens: int = 1024

    def resolve_api_key(self) -> str:
        """Read the API key from the environment, failing fast when absent"""
        api_key = os.environ.get(self.api_key_env, "").strip()
        if not api_key:
            raise ConfigurationError(
                f"{self.api_key_env} is not set; disable ai_judge or provide a key"
            )
        return api_key


@dataclass
class DecisionConfig:
    """Configuration for merging duplicate signals"""
    ai_confidence_floor: float = 0.9
    block_threshold: float = 0.85  # Uploads at or above this are rejected


@dataclass
class BatchConfig:
    """Configuration for batch comparison"""
    max_images: int = 10
    max_ai_calls: int = 45  # All pairs of 10 images
    n_workers: int = 4


@dataclass
class StorageConfig:
    """Configuration for IPFS content stores (credentials come from env)"""
    gateway: str = "https://ipfs.io/ipfs/"
    web3_storage_token_env: str = "WEB3_STORAGE_TOKEN"
    pinata_api_key_env: str = "PINATA_API_KEY"
    pinata_secret_key_env: str = "PINATA_SECRET_KEY"
    ipfs_api_url: str = "https://ipfs.infura.io:5001"
    ipfs_project_id_env: str = "INFURA_PROJECT_ID"
    ipfs_project_secret_env: str = "INFURA_PROJECT_SECRET"
    timeout_seconds: float = 60.0


@dataclass
class ProcessingConfig:
    """Configuration for upload processing"""
    upload_dir: str = "uploads"
    watermark_text: str = "SAMPLE"
    thumbnail_size: int = 300
    thumbnail_quality: int = 80
    qr_size: int = 200
    max_upload_bytes: int = 5 * 1024 * 1024  # 5 MB for AI processing


@dataclass
class SystemConfig:
    """System-wide configuration"""
    log_level: str = "INFO"
    log_dir: str = "logs"

    hashing: HashingConfig = field(default_factory=HashingConfig)
    candidates: CandidateConfig = field(default_factory=CandidateConfig)
    ai_judge: AIJudgeConfig = field(default_factory=AIJudgeConfig)
    decision: DecisionConfig = field(default_factory=DecisionConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)

    def save(self, path: str = "config.yaml"):
        """Save configuration to YAML file"""
        with open(path, 'w') as f:
            yaml.dump(asdict(self), f, default_flow_style=False, indent=2)

    @classmethod
    def load(cls, path: Optional[str] = "config.yaml") -> 'SystemConfig':
        """Load configuration from YAML file"""
        if path is None or not Path(path).exists():
            return cls()  # Return default config

        with open(path, 'r') as f:
            config_dict = yaml.safe_load(f) or {}

        config = cls()
        config.log_level = config_dict.get('log_level', config.log_level)
        config.log_dir = config_dict.get('log_dir', config.log_dir)

        # Nested sections keep their defaults for any key the file omits
        for section in fields(cls):
            if section.name in ('log_level', 'log_dir'):
                continue
            values = config_dict.get(section.name)
            if not values:
                continue
            current = getattr(config, section.name)
            known = {f.name for f in fields(current)}
            unknown = set(values) - known
            if unknown:
                raise ConfigurationError(
                    f"Unknown keys in '{section.name}': {', '.join(sorted(unknown))}"
                )
            setattr(config, section.name, type(current)(**{**asdict(current), **values}))

        return config
