"""
Configuration management for the pair engine.
"""
import json
import os
from typing import Optional
from dataclasses import dataclass, asdict


@dataclass
class ChainConfig:
    """Execution environment configuration."""
    chain_id: int = 1
    start_timestamp: Optional[int] = None  # None: current wall clock


@dataclass
class FactoryConfig:
    """Pair factory configuration. Addresses are hex strings."""
    fee_to_setter: str = "00" * 20
    fee_to: Optional[str] = None  # None: protocol fee off

    def fee_to_setter_address(self) -> bytes:
        return bytes.fromhex(self.fee_to_setter)

    def fee_to_address(self) -> Optional[bytes]:
        return bytes.fromhex(self.fee_to) if self.fee_to else None


@dataclass
class MonitoringConfig:
    """Monitoring configuration."""
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 9090


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


@dataclass
class Config:
    """Main configuration."""
    chain: ChainConfig
    factory: FactoryConfig
    monitoring: MonitoringConfig
    logging: LoggingConfig

    @classmethod
    def default(cls) -> 'Config':
        """Create default configuration."""
        return cls(
            chain=ChainConfig(),
            factory=FactoryConfig(),
            monitoring=MonitoringConfig(),
            logging=LoggingConfig()
        )

    @classmethod
    def from_file(cls, path: str) -> 'Config':
        """Load configuration from JSON file."""
        with open(path, 'r') as f:
            data = json.load(f)

        return cls(
            chain=ChainConfig(**data.get('chain', {})),
            factory=FactoryConfig(**data.get('factory', {})),
            monitoring=MonitoringConfig(**data.get('monitoring', {})),
            logging=LoggingConfig(**data.get('logging', {}))
        )

    def to_file(self, path: str):
        """Save configuration to JSON file."""
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'chain': asdict(self.chain),
            'factory': asdict(self.factory),
            'monitoring': asdict(self.monitoring),
            'logging': asdict(self.logging)
        }
