"""
Configuration management for Sprout Measure.

Loads YAML configuration with defaults for every section. Defaults match the
parameters commonly used for bead-sprouting assays imaged at 10x.
"""

import os
from dataclasses import asdict, dataclass, field, fields

import yaml

from sproutmeasure.errors import ConfigError


@dataclass
class InputConfig:
    """Input discovery and thresholding."""
    image_ext: str = "tif"
    probability_match: str = "_Probabilities.tif"
    probability_threshold: float = 0.5
    probability_channel: int = 0


@dataclass
class SeedConfig:
    """Seed extraction."""
    min_seed_size: float = 5000.0  # pixels
    exclude_border: bool = True


@dataclass
class ProtrusionConfig:
    """Core/protrusion decomposition."""
    min_protrusion_size: float = 100.0  # pixels
    open_radius: float = 30.0
    dilate_radius: float = 10.0


@dataclass
class OutputConfig:
    """Output file names."""
    results_name: str = "sproutMeasurements.csv"
    report_name: str = "quality_report.json"
    summary_name: str = "quality_summary.txt"


@dataclass
class BatchConfig:
    """Batch execution."""
    workers: int = 1  # >1 measures seeds of an image in a process pool


@dataclass
class TracingConfig:
    """Configuration for runtime tracing."""
    enabled: bool = False
    level: str = "INFO"
    file_path: str = None
    json_output: bool = False


@dataclass
class DebugConfig:
    """Configuration for debug overlay generation."""
    enabled: bool = False
    max_edge_scale: int = 1600


@dataclass
class PipelineConfig:
    """Complete pipeline configuration."""
    input: InputConfig = field(default_factory=InputConfig)
    seed: SeedConfig = field(default_factory=SeedConfig)
    protrusion: ProtrusionConfig = field(default_factory=ProtrusionConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    tracing: TracingConfig = field(default_factory=TracingConfig)
    debug: DebugConfig = field(default_factory=DebugConfig)


def load_config(config_path=None):
    """
    Load configuration from YAML file.

    Falls back to defaults for any missing values. The result is validated.
    """
    config = PipelineConfig()

    if config_path and os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}

        config = _merge_config(config, yaml_data)

    validate_config(config)
    return config


def _merge_config(config, yaml_data):
    """Merge YAML data into config dataclass, ignoring unknown keys."""
    for section in fields(config):
        values = yaml_data.get(section.name)
        if not isinstance(values, dict):
            continue
        target = getattr(config, section.name)
        for key, value in values.items():
            if hasattr(target, key):
                setattr(target, key, value)

    return config


def validate_config(config):
    """
    Check parameter constraints.

    Raises ConfigError describing every violated constraint.
    """
    problems = []
    prot = config.protrusion

    if config.seed.min_seed_size < 0:
        problems.append("seed.min_seed_size must be >= 0")
    if prot.min_protrusion_size < 0:
        problems.append("protrusion.min_protrusion_size must be >= 0")
    if prot.open_radius <= 0:
        problems.append("protrusion.open_radius must be > 0")
    if prot.dilate_radius < 0:
        problems.append("protrusion.dilate_radius must be >= 0")
    if prot.dilate_radius >= prot.open_radius:
        # a dilation as large as the opening re-absorbs the protrusions
        problems.append("protrusion.dilate_radius must be smaller than protrusion.open_radius")
    if not 0.0 < config.input.probability_threshold <= 1.0:
        problems.append("input.probability_threshold must be in (0, 1]")
    if config.batch.workers < 1:
        problems.append("batch.workers must be >= 1")

    if problems:
        raise ConfigError("; ".join(problems))

    return config


def save_default_config(path):
    """Save default configuration to YAML file for reference."""
    yaml_data = asdict(PipelineConfig())
    # file_path has no sensible default to write out
    yaml_data["tracing"].pop("file_path", None)

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(yaml_data, f, default_flow_style=False, sort_keys=False)
