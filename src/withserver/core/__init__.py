"""withserver core: configuration, layout helpers and the server lifecycle."""
