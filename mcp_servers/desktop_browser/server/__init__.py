"""Tool and resource layer of the desktop browser MCP server."""
