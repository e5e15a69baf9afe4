"""`revstat` - out-of-core row REVersal and running STATistics for raster stacks.

Subpackages:
- core: Mirrored row reversal, running mean/sd reduction, completion guard
- store: HDF5 array store and GeoTIFF raster export adapters
- pipeline: Orchestrator and run ledger
- schemas: Layered Pydantic configuration
"""

__version__ = "0.1.0"
