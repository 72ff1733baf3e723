"""GeoProspector backend: exploration-report synthesis over geospatial targets."""

__version__ = "0.1.0"
