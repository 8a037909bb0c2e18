"""
Curator MCP - tool surface for the Curator retrieval core.

Run with:
    python -m curator_mcp.server.server --read-only
"""
