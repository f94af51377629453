"""
IPS Agent - Core Package

A remote diagnostic-collection agent that locates an installation on the host,
packs a device-scoped subset of its output files into a ZIP archive and
streams the archive to connected peers over a WebSocket channel.
"""

__version__ = "0.1.0"
__author__ = "IPS Agent Team"
