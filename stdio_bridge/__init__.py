"""
stdio-bridge - expose a stdio JSON-RPC child process over HTTP.

POST bodies are relayed to the child as newline-delimited JSON frames and
the child's responses are correlated back to the waiting HTTP caller by id.
"""

__version__ = "1.0.0"
