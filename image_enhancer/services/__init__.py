"""Services for fetching, transforming and caching slide images."""
