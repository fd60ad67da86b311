# Userup Python SDK
# File: tools/__init__.py
# Version: v2

"""MCP tool surface over the Userup client (see :mod:`userup.tools.tasks`)."""
