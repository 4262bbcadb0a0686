# Services layer: catalog, search, digests, statistics and image resolution
