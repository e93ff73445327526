"""Offline Monte Carlo path tracer built on Taichi.

Scenes are described on the host with plain Python objects (primitives,
decorators, media, materials, textures), compiled into a bounding volume
hierarchy, uploaded to Taichi fields and rendered by a data-parallel kernel.

Subpackages:
    core: Ray representation, sampling helpers and the path tracing integrator
    geometry: Bounding boxes, primitives, decorators, media and the BVH builder
    materials: Scattering models, textures and Perlin noise
    scene: Scene assembly, device-side storage and demo scenes
    camera: Thin-lens camera configuration and primary ray generation
    output: Image encoding (PPM, PNG)
"""

__version__ = "0.1.0"
