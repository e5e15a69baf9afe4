"""Storage adapters.

- h5store: HDF5 array store (h5py) holding the flat datasets
- raster: GeoTIFF export (rasterio) of derived datasets
"""

from revstat.store.h5store import ArrayStore, NodeInfo
from revstat.store.raster import RasterExporter, raster_dimensions

__all__ = ['ArrayStore', 'NodeInfo', 'RasterExporter', 'raster_dimensions']
