"""
OSM Map Explorer

Query OpenStreetMap through the Overpass API, turn the results into
styled map layers and export them as GeoJSON, KML or Shapefile.
"""

__version__ = "1.0.0"
