"""Bitbucket MCP Server - Bitbucket Cloud and Server repository tools over MCP."""

__version__ = "0.1.0"
