from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Any, Dict, Optional

import uvicorn
import yaml
from fastapi import FastAPI, HTTPException, Path as PathParam, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse, Response

from bundle.reader import TileCacheReader
from common.errors import CacheConfigError, TileReadError, UnsupportedFormatError
from common.logging_setup import get_logger, setup_logging
from common.types import CacheConf, TileAddress
from server.conf import ConfCache, media_type

log = get_logger("server")

DEFAULT_CONFIG: Dict[str, Any] = {
    "tiles": {"raster_root": "image_tiles", "vector_root": "vector_tiles"},
    "server": {"host": "0.0.0.0", "port": 3060},
    "logging": {"level": "INFO"},
}


def _load_config(path: Optional[str] = None) -> Dict:
    path = path or os.environ.get("TILESERVER_CONFIG") or "config/params.yaml"
    if not Path(path).exists():
        return dict(DEFAULT_CONFIG)
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def build_service_description(map_name: str, conf: CacheConf) -> Dict[str, Any]:
    """ArcGIS Server style MapServer description so JS API / OpenLayers clients can consume the cache."""
    is_png = media_type(conf.image_format) == "image/png"
    return {
        "currentVersion": 11.4,
        "serviceDescription": f"Dynamically loaded image tile cache: {map_name}",
        "mapName": "Layers",
        "capabilities": "Map,Tiles",
        "supportedImageFormatTypes": "PNG24,PNG,GIF" if is_png else "JPG,PNG24,PNG,GIF",
        "tileInfo": conf.tile_info.to_json(),
        "exportTilesAllowed": False,
        "maxExportTilesCount": 100000,
        "singleFusedMapCache": True,
        "tileFormat": "PNG24" if is_png else "JPEG",
        "fullExtent": {"xmin": -180, "ymin": -90, "xmax": 180, "ymax": 90, "spatialReference": {"wkid": 4326}},
        "tileUrlTemplates": [f"{map_name}/MapServer/tile/{{level}}/{{row}}/{{col}}"],
    }


def _safe_join(root: Path, rel: str) -> Optional[Path]:
    """Resolve `rel` under `root`; None if it escapes the root."""
    target = (root / rel).resolve()
    if not target.is_relative_to(root):
        return None
    return target


def _send_json_file(path: Optional[Path]) -> Response:
    if path is None or not path.is_file():
        return JSONResponse({"error": "not_found"}, status_code=404)
    return FileResponse(path, media_type="application/json")


def create_app(P: Dict) -> FastAPI:
    tiles_cfg = P.get("tiles", {})
    raster_root = Path(tiles_cfg.get("raster_root", "image_tiles")).resolve()
    vector_root = Path(tiles_cfg.get("vector_root", "vector_tiles")).resolve()
    raster_name = raster_root.name
    vector_name = vector_root.name

    confs = ConfCache(raster_root)

    app = FastAPI(title="ArcGIS Tile Cache Server", version="1.0.0")
    app.state.confs = confs
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "raster_root": str(raster_root),
            "vector_root": str(vector_root),
            "maps_loaded": len(confs),
        }

    # -------- 1. raster tiles (ArcGIS cache) --------

    @app.get(f"/{raster_name}/{{map_name}}/MapServer")
    def map_service(map_name: str):
        try:
            conf = confs.get(map_name)
        except CacheConfigError as e:
            log.error("MapServer request failed", extra={"extra": {"map": map_name, "error": str(e)}})
            return JSONResponse({"error": "Service configuration not found or invalid."}, status_code=404)
        return build_service_description(map_name, conf)

    @app.get(f"/{raster_name}/{{map_name}}/MapServer/tile/{{level}}/{{row}}/{{col}}")
    def tile(
        map_name: str,
        level: int = PathParam(..., ge=0),
        row: int = PathParam(..., ge=0),
        col: int = PathParam(..., ge=0),
    ):
        """
        Return raw tile bytes with the cache's image MIME type.

        404 when the map or the tile does not exist; 500 when the cache format
        is unsupported or a bundle cannot be read.
        """
        try:
            conf = confs.get(map_name)
        except CacheConfigError as e:
            log.error("Cache configuration unavailable", extra={"extra": {"map": map_name, "error": str(e)}})
            raise HTTPException(status_code=404, detail="map_not_found")

        address = TileAddress(level=level, row=row, column=col)
        reader = TileCacheReader.from_conf(confs.all_layers_dir(map_name), conf)
        try:
            data = reader.read_tile(address)
        except UnsupportedFormatError as e:
            log.error("Unsupported cache format", extra={"extra": {"map": map_name, "tile_type": e.tile_type}})
            return JSONResponse({"error": "unsupported_format", "detail": str(e)}, status_code=500)
        except TileReadError:
            log.exception("Error reading tile %s [%s]", map_name, address)
            return JSONResponse({"error": "tile_read_error"}, status_code=500)

        if not data:
            return JSONResponse({"error": "tile_not_found"}, status_code=404)
        return Response(
            content=data,
            media_type=media_type(conf.image_format, data),
            headers={"Cache-Control": "public, max-age=60"},
        )

    # -------- 2. vector tile packages (static) --------

    @app.get(f"/{vector_name}/{{package}}/p12")
    @app.get(f"/{vector_name}/{{package}}/p12/")
    def vector_service(package: str, request: Request, f: Optional[str] = None):
        if f == "json":
            return _send_json_file(_safe_join(vector_root, f"{package}/p12/root.json"))
        if not request.url.path.endswith("/"):
            q = f"?{request.url.query}" if request.url.query else ""
            return RedirectResponse(f"{request.url.path}/{q}", status_code=301)
        return Response(status_code=204)

    @app.get(f"/{vector_name}/{{package}}/p12/tilemap")
    def vector_tilemap(package: str):
        return _send_json_file(_safe_join(vector_root, f"{package}/p12/tilemap/root.json"))

    @app.get(f"/{vector_name}/{{file_path:path}}")
    def vector_static(file_path: str):
        target = _safe_join(vector_root, file_path)
        if target is None or not target.is_file():
            raise HTTPException(status_code=404, detail="not_found")
        media = "application/x-protobuf" if target.suffix == ".pbf" else None
        return FileResponse(target, media_type=media)

    return app


P = _load_config()
app = create_app(P)


def main() -> None:
    ap = argparse.ArgumentParser(description="ArcGIS tile cache server")
    ap.add_argument("--config", default=None, help="YAML config (default: $TILESERVER_CONFIG or config/params.yaml)")
    ap.add_argument("--host", default=None)
    ap.add_argument("--port", type=int, default=None)
    args = ap.parse_args()

    cfg = _load_config(args.config)
    setup_logging(cfg.get("logging", {}).get("level"))
    server_cfg = cfg.get("server", {})
    host = args.host or server_cfg.get("host", "0.0.0.0")
    port = args.port or int(server_cfg.get("port", 3060))

    application = create_app(cfg)
    tiles_cfg = cfg.get("tiles", {})
    log.info(
        "Tile server starting",
        extra={"extra": {
            "host": host,
            "port": port,
            "raster": f"/{Path(tiles_cfg.get('raster_root', 'image_tiles')).name}/{{map}}/MapServer",
            "vector": f"/{Path(tiles_cfg.get('vector_root', 'vector_tiles')).name}/{{package}}/p12/",
        }},
    )
    uvicorn.run(application, host=host, port=port)


# -------- local dev entrypoint --------
if __name__ == "__main__":
    main()
