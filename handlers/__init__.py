"""Handlers exposing sheet operations to the MCP tools."""
