"""Taichi runtime configuration.

Every module that declares fields must be imported after ``init_runtime``
(or a direct ``ti.init``) has run.
"""

import logging
from dataclasses import dataclass

import taichi as ti

logger = logging.getLogger(__name__)

ARCHS = {
    "cpu": ti.cpu,
    "gpu": ti.gpu,
    "cuda": ti.cuda,
    "vulkan": ti.vulkan,
    "metal": ti.metal,
}


@dataclass(frozen=True)
class RuntimeConfig:
    """Backend selection and device RNG seed.

    Attributes:
        arch: Backend name, one of ``ARCHS``.
        random_seed: Seed of the device random generator.
        debug: Enable Taichi debug mode (bounds checks and kernel asserts).
    """

    arch: str = "cpu"
    random_seed: int = 0
    debug: bool = False

    def __post_init__(self) -> None:
        if self.arch not in ARCHS:
            raise ValueError(f"Unknown arch {self.arch!r}, expected one of {sorted(ARCHS)}")


def init_runtime(config: RuntimeConfig = RuntimeConfig()) -> None:
    """Initialize Taichi with the given configuration."""
    ti.init(arch=ARCHS[config.arch], random_seed=config.random_seed, debug=config.debug)
    logger.debug("Taichi initialized: arch=%s seed=%d", config.arch, config.random_seed)
