"""Tool modules for Bitbucket MCP Server."""
