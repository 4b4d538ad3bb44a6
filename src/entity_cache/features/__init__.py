"""Features - the cache and persistence feature packages."""
