"""Progressive path tracing over a scene and BMP output of the result."""

from __future__ import annotations

import math
import os
import struct
import sys
import time
from typing import List, Optional, TextIO, Union

import numpy as np

from voxtrace.intersect import intersect_ray_scene
from voxtrace.mathutil import (
    coat_scattering,
    make_seeded_random_engine,
    metal_scattering,
    normalize,
    random_direction_in_hemisphere,
    reflect_ray,
)
from voxtrace.primitives import (
    FLOAT_MAX,
    ITERATIONS,
    RESOLUTION_X,
    RESOLUTION_Y,
    SAMPLES_X,
    SAMPLES_Y,
    IntersectionData,
    MaterialType,
    Ray,
)

PathLike = Union[str, "os.PathLike[str]"]

BMP_HEADER_SIZE = 54
CAMERA_ORIGIN = (0.0, 0.0, 920.0)
IMAGE_PLANE_Z = 900.0
MAX_BOUNCES = 5
SURFACE_OFFSET = 0.1
ESCAPE_ATTENUATION = 0.01

_SCATTERING = {
    MaterialType.DIFFUSE: lambda normal, direction, rng: random_direction_in_hemisphere(normal, rng),
    MaterialType.METAL: metal_scattering,
    MaterialType.COAT: coat_scattering,
}


def encode_bmp(pixels, width: int, height: int, iterations: int) -> bytes:
    """Encode accumulated colours as a 24-bit uncompressed BMP.

    Each colour is divided by ``iterations``, scaled to 0..255 and truncated.
    Channels are written in the order they are stored, rows are not padded.
    """
    if width <= 0 or height <= 0:
        raise ValueError("image dimensions must be positive")
    if iterations <= 0:
        raise ValueError("iterations must be positive")
    colors = np.asarray(pixels, dtype=float).reshape(-1, 3)
    if len(colors) != width * height:
        raise ValueError(
            f"expected {width * height} pixels, got {len(colors)}"
        )

    image_size = 3 * width * height
    header = struct.pack(
        "<2sIIIIiiHHIIiiII",
        b"BM",
        BMP_HEADER_SIZE + image_size,
        0,
        BMP_HEADER_SIZE,
        40,
        width,
        height,
        1,
        24,
        0,
        image_size,
        0,
        0,
        0,
        0,
    )
    scaled = np.nan_to_num(colors * (1.0 / iterations) * 255.0)
    data = np.clip(np.trunc(scaled), 0, 255).astype(np.uint8)
    return header + data.tobytes()


def shade_ray(ray: Ray, hit: IntersectionData, iteration: int, iray: int) -> None:
    """Apply one bounce of shading to a ray in place.

    ``iray`` is the ray's position among the rays still in flight; together
    with the iteration and remaining bounces it seeds the random engine.
    """
    if ray.remaining_bounces <= 0:
        ray.color = ray.color * ESCAPE_ATTENUATION

    if not hit.impact_distance < FLOAT_MAX:
        ray.remaining_bounces = 0
        ray.color = ray.color * ESCAPE_ATTENUATION
        hit.impact_distance = FLOAT_MAX
        return

    direction = normalize(ray.direction)
    point = ray.origin + direction * hit.impact_distance
    normal = hit.impact_normal
    material = hit.impact_material

    if ray.remaining_bounces > 0:
        kind = material.material_type
        if kind in _SCATTERING:
            rng = make_seeded_random_engine(iteration, iray, ray.remaining_bounces)
            ray.direction = np.asarray(_SCATTERING[kind](normal, direction, rng), dtype=float)
            ray.origin = point + SURFACE_OFFSET * normal
            ray.color = ray.color * material.color
        elif kind is MaterialType.EMISSIVE:
            ray.remaining_bounces = 0
            ray.color = ray.color * material.color
            hit.impact_distance = FLOAT_MAX
            return
        elif kind is MaterialType.REFLECTIVE:
            ray.color = ray.color * material.color
            ray.origin = point + SURFACE_OFFSET * normal
            ray.direction = reflect_ray(direction, normal)

    hit.impact_distance = FLOAT_MAX
    ray.remaining_bounces -= 1


def _copy_hit(hit: IntersectionData) -> IntersectionData:
    return IntersectionData(
        impact_distance=hit.impact_distance,
        impact_normal=hit.impact_normal.copy(),
        impact_material=hit.impact_material,
        ipixel=hit.ipixel,
    )


class Renderer:
    """Accumulates path-traced samples of a scene into an image buffer."""

    def __init__(
        self,
        scene,
        width: int = RESOLUTION_X,
        height: int = RESOLUTION_Y,
        samples_x: int = SAMPLES_X,
        samples_y: int = SAMPLES_Y,
        iterations: int = ITERATIONS,
        stream: Optional[TextIO] = None,
    ) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("image dimensions must be positive")
        if samples_x <= 0 or samples_y <= 0:
            raise ValueError("sample counts must be positive")
        if iterations <= 0:
            raise ValueError("iterations must be positive")
        self.scene = scene
        self.width = width
        self.height = height
        self.samples_x = samples_x
        self.samples_y = samples_y
        self.iterations = iterations
        self.stream = stream
        self.image = np.zeros((width * height, 3), dtype=float)
        self.rays: List[Ray] = []
        self.hits: List[IntersectionData] = []
        self._first_hits: Optional[List[IntersectionData]] = None

    @property
    def ray_count(self) -> int:
        return self.width * self.height * self.samples_x * self.samples_y

    def generate_rays(self) -> List[Ray]:
        """Create the camera rays for one iteration and fresh hit records."""
        columns = self.width * self.samples_x
        step_x = 20.0 / columns
        step_y = 16.0 / (self.height * self.samples_y)
        camera = np.array(CAMERA_ORIGIN, dtype=float)

        self.rays = []
        self.hits = []
        for iray in range(self.ray_count):
            y, x = divmod(iray, columns)
            ipixel = (y // self.samples_y) * self.width + x // self.samples_x
            target = np.array([-10.0 + x * step_x, -4.0 + y * step_y, IMAGE_PLANE_Z])
            self.rays.append(
                Ray(
                    origin=camera,
                    direction=target - camera,
                    color=(1.0, 1.0, 1.0),
                    remaining_bounces=MAX_BOUNCES,
                    ipixel=ipixel,
                )
            )
            self.hits.append(IntersectionData(impact_distance=FLOAT_MAX, ipixel=ipixel))
        return self.rays

    def render_iteration(self, iteration: int) -> None:
        """Trace one sample per ray until every ray terminates, then accumulate."""
        self.generate_rays()
        active = list(zip(self.rays, self.hits))
        bounce = 0
        while active:
            if bounce == 0 and self._first_hits is not None:
                for (_, hit), cached in zip(active, self._first_hits):
                    hit.impact_distance = cached.impact_distance
                    hit.impact_normal = cached.impact_normal.copy()
                    hit.impact_material = cached.impact_material
                    hit.ipixel = cached.ipixel
            else:
                for ray, hit in active:
                    intersect_ray_scene(self.scene, ray, hit)
                if bounce == 0:
                    self._first_hits = [_copy_hit(hit) for _, hit in active]

            for iray, (ray, hit) in enumerate(active):
                shade_ray(ray, hit, iteration, iray)

            active = [pair for pair in active if pair[0].remaining_bounces > 0]
            bounce += 1

        weight = 1.0 / (self.samples_x * self.samples_y)
        for ray in self.rays:
            ray.color = np.sqrt(ray.color)
            self.image[ray.ipixel] += weight * ray.color

    def render_loop(self) -> None:
        """Clear the image and run every iteration, reporting timings."""
        out = self.stream if self.stream is not None else sys.stdout
        self.image = np.zeros((self.width * self.height, 3), dtype=float)
        self._first_hits = None
        start = time.perf_counter_ns()
        for iteration in range(self.iterations):
            iteration_start = time.perf_counter_ns()
            self.render_iteration(iteration)
            elapsed = (time.perf_counter_ns() - iteration_start) // 1000
            print(f"Iteration {iteration + 1}: {elapsed} microseconds", file=out)
        total = (time.perf_counter_ns() - start) // 1000
        print(f"Full run: {total} microseconds", file=out)

    def image_bytes(self) -> bytes:
        """The image as BMP bytes, averaged over the configured iterations."""
        return encode_bmp(self.image, self.width, self.height, self.iterations)

    def write_image(self, path: PathLike) -> None:
        with open(path, "wb") as handle:
            handle.write(self.image_bytes())