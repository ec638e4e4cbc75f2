"""
Configuration management for reproducible network meta-analyses.

This module provides:
- Dataclass-based configuration with validation
- YAML loading/saving support
- Analysis metadata tracking

Usage:
    >>> config = AnalysisConfig.from_yaml("configs/smoking.yaml")
    >>> nma = odds_ratio_nma(..., random_effects=config.random_effects, config=config.nma)
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, Optional, Any
from pathlib import Path
import json
import hashlib
from datetime import datetime
import platform

import yaml
import numpy as np
import scipy
import networkx as nx


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================

@dataclass(frozen=True)
class NMAConfig:
    """Numerical settings of the estimation engine."""
    anscombe_increment: float = 0.5
    pinv_rcond: float = 1e-6  # relative to the largest singular value
    funnel_points: int = 500
    min_asymmetry_studies: int = 5

    def __post_init__(self):
        if self.anscombe_increment < 0:
            raise ValueError(f"anscombe_increment must be >= 0, got {self.anscombe_increment}")
        if not 0 < self.pinv_rcond < 1:
            raise ValueError(f"pinv_rcond must be in (0, 1), got {self.pinv_rcond}")
        if self.funnel_points < 2:
            raise ValueError(f"funnel_points must be >= 2, got {self.funnel_points}")
        if self.min_asymmetry_studies < 3:
            raise ValueError(f"min_asymmetry_studies must be >= 3, got {self.min_asymmetry_studies}")


DEFAULT_NMA_CONFIG = NMAConfig()


@dataclass
class AnalysisConfig:
    """
    Master configuration for an analysis run.

    Combines the data-level choices (outcome type, random effects, ranking
    direction) with the engine settings. Supports YAML serialization and
    hash-based integrity checking.

    Example:
        >>> config = AnalysisConfig(name="smoking", outcome="binary", random_effects=True)
        >>> config.save("configs/smoking.yaml")
        >>>
        >>> # Later...
        >>> config = AnalysisConfig.from_yaml("configs/smoking.yaml")
    """
    # Analysis metadata
    name: str = "network_meta_analysis"
    outcome: str = "binary"
    output_dir: str = "Results"

    # Model choices
    random_effects: bool = False
    smaller_better: bool = False
    confidence_level: float = 0.95
    reference_treatment: Optional[Any] = None

    # Engine settings
    nma: NMAConfig = field(default_factory=NMAConfig)

    def __post_init__(self):
        valid_outcomes = {"binary", "continuous"}
        if self.outcome not in valid_outcomes:
            raise ValueError(f"Invalid outcome: {self.outcome}. Must be one of {valid_outcomes}")
        if not 0 < self.confidence_level < 1:
            raise ValueError(f"confidence_level must be in (0, 1), got {self.confidence_level}")

        if isinstance(self.nma, dict):
            self.nma = NMAConfig(**self.nma)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to nested dictionary."""
        return {
            'name': self.name,
            'outcome': self.outcome,
            'output_dir': self.output_dir,
            'random_effects': self.random_effects,
            'smaller_better': self.smaller_better,
            'confidence_level': self.confidence_level,
            'reference_treatment': self.reference_treatment,
            'nma': asdict(self.nma),
        }

    def save(self, path: str) -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(cls, path: str) -> 'AnalysisConfig':
        """Load configuration from YAML file."""
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
        return cls(**(data or {}))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AnalysisConfig':
        """Create from dictionary."""
        return cls(**data)

    def get_hash(self) -> str:
        """
        Compute deterministic hash of configuration.

        Useful for detecting configuration changes between runs.
        """
        config_str = json.dumps(self.to_dict(), sort_keys=True, default=str)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    def get_run_id(self) -> str:
        """Generate unique run ID based on config hash and timestamp."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"{self.name}_{timestamp}_{self.get_hash()[:8]}"


# =============================================================================
# ANALYSIS METADATA
# =============================================================================

def get_system_info() -> Dict[str, Any]:
    """
    Get system information for reproducibility documentation.

    Returns:
        Dict with Python, platform and numerical library versions
    """
    return {
        'timestamp': datetime.now().isoformat(),
        'python_version': platform.python_version(),
        'platform': platform.platform(),
        'numpy_version': np.__version__,
        'scipy_version': scipy.__version__,
        'networkx_version': nx.__version__,
    }


def save_analysis_metadata(
    config: AnalysisConfig,
    output_dir: str,
    extra_info: Optional[Dict] = None
) -> str:
    """
    Save complete analysis metadata for reproducibility.

    Args:
        config: Analysis configuration
        output_dir: Directory to save metadata
        extra_info: Optional additional information

    Returns:
        Path to saved metadata file
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    metadata = {
        'config': config.to_dict(),
        'config_hash': config.get_hash(),
        'system': get_system_info(),
    }

    if extra_info:
        metadata['extra'] = extra_info

    path = output_dir / f"analysis_metadata_{config.get_run_id()}.json"

    with open(path, 'w') as f:
        json.dump(metadata, f, indent=2, default=str)

    return str(path)


# =============================================================================
# DEFAULT CONFIGURATIONS
# =============================================================================

def get_default_config() -> AnalysisConfig:
    """Get default analysis configuration."""
    return AnalysisConfig()
