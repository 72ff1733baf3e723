"""Operator's current target selection: a point plus an optional plotted area."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from geoprospector.geo.importer import TooManyVerticesError
from geoprospector.geo.primitives import is_enforceable, is_simple_polygon, resolve_target
from geoprospector.models.geo import Coordinate, Target

logger = logging.getLogger(__name__)

DEFAULT_POINT = Coordinate(lat=-25.2, lng=27.08)


@dataclass
class TargetSelection:
    point: Coordinate = DEFAULT_POINT
    boundary: list[Coordinate] = field(default_factory=list)
    use_boundary: bool = False
    max_vertices: int = 1000

    def set_point(self, point: Coordinate) -> None:
        self.point = point

    def add_vertex(self, vertex: Coordinate) -> None:
        if len(self.boundary) >= self.max_vertices:
            raise TooManyVerticesError(len(self.boundary) + 1, self.max_vertices)
        self.boundary = [*self.boundary, vertex]

    def clear_boundary(self) -> None:
        self.boundary = []
        self.use_boundary = False

    def set_use_boundary(self, enabled: bool) -> None:
        self.use_boundary = enabled

    def replace_boundary(self, vertices: list[Coordinate]) -> None:
        """Apply an import: all vertices at once, area enabled when enforceable."""
        if len(vertices) > self.max_vertices:
            raise TooManyVerticesError(len(vertices), self.max_vertices)
        self.boundary = list(vertices)
        self.use_boundary = is_enforceable(self.boundary)
        if self.boundary:
            self.point = self.boundary[0]

    @property
    def area_enforced(self) -> bool:
        return self.use_boundary and is_enforceable(self.boundary)

    @property
    def self_intersecting(self) -> bool:
        return not is_simple_polygon(self.boundary)

    def resolve(self) -> Target:
        return resolve_target(self.point, self.boundary, self.use_boundary)
