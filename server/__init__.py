"""
Tile server: HTTP front end for ArcGIS tile caches

- /{raster_root}/{map}/MapServer                         ArcGIS-style service description
- /{raster_root}/{map}/MapServer/tile/{level}/{row}/{col} tile bytes (compact V1/V2 or exploded cache)
- /{vector_root}/{package}/p12/...                        static vector tile package files
- /health

Run:
    python -m server.app --config config/params.yaml
    uvicorn server.app:app --port 3060
"""
