"""Scene assembly, device storage and demo scenes.

Components:
    intersection: Flattening of objects into device primitives, Taichi scene
        storage and the BVH-accelerated ray queries
    manager: Unified material ids, scene building and upload
    scenes: Demo scene builders registered by name

Importing this package allocates Taichi fields, so ``ti.init`` must be called
first.
"""

from .intersection import INFINITY, SceneStats, clear_scene_storage, flatten, intersect_scene
from .manager import MaterialType, Scene, SceneManager, SceneOptions, upload_scene
from .scenes import SCENES, SceneBuildOptions, build_scene

__all__ = [
    "INFINITY",
    "SceneStats",
    "clear_scene_storage",
    "flatten",
    "intersect_scene",
    "MaterialType",
    "Scene",
    "SceneManager",
    "SceneOptions",
    "upload_scene",
    "SCENES",
    "SceneBuildOptions",
    "build_scene",
]
