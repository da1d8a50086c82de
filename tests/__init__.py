"""
Tile server test suite

Structure:
- unit/: decoders, address resolution, conf.xml parsing
- integration/: HTTP endpoints through FastAPI's TestClient
- fixtures/: synthetic bundle and conf.xml builders
"""
