"""
Controllers

Inbound interfaces of the bridge. Only HTTP for now.
"""
