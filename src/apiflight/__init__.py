"""apiflight -- an async HTTP data-access layer with request coalescing.

Builds and executes HTTP requests through an interceptor chain, shares one
network call between concurrent identical requests, caches decoded results
on disk, merges cursor-paginated pages and streams multipart uploads from a
temporary file with progress reporting.

Typical use::

    service = create_data_service(load_settings())
    albums = await service.load(Accessor(Endpoint(url), cache_id="albums"))

Modules:
    client: Endpoints, codecs, the transport and multipart uploads.
    auth: Request interceptors.
    data: Accessors, the single-flight coordinator and the data service.
    cache: Disk-backed storage for decoded results.
    files: Temporary file handling.
    config: XDG-aware settings and credential resolution.
    app: Typer CLI entry point.
"""

__version__ = "0.1.0"
