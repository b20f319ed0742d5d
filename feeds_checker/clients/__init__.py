from .http_client import FetchError, ResourceFetcher, fetch_bytes, iter_chunks

__all__ = ["FetchError", "ResourceFetcher", "fetch_bytes", "iter_chunks"]
