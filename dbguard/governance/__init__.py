"""Access control for the dbguard MCP server.

Provides layered, network-free checks that run before a connection is leased:
- SQL statement classification (leading keyword + embedded side-effect scan)
- Security-mode policy (readonly / limited_write / full_access)
- Schema allow-list guard
"""
