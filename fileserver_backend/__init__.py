"""Backend utilities for the LAN file server.

Route handlers in server.py stay thin; the work lives here:
- path sanitization so client paths never leave the served root
- single byte-range parsing and chunked file streaming
- selection expansion, an LRU selection cache and curl batch configs

Selection ids are random UUID4 strings and only live in memory; restarting the
server forgets every registered selection.
"""
