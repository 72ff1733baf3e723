"""Geographic value types."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Coordinate(BaseModel):
    """WGS 84 point. Immutable."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)


class Target(BaseModel):
    """The resolved analysis subject.

    ``point`` is what the run is addressed at. When the operator enforces a
    plotted area, ``point`` is the boundary centroid and ``boundary`` keeps
    every vertex for the spatial-constraint clause of the report prompt.
    """

    model_config = ConfigDict(frozen=True)

    point: Coordinate
    boundary: tuple[Coordinate, ...] | None = None

    @property
    def is_area(self) -> bool:
        return self.boundary is not None
