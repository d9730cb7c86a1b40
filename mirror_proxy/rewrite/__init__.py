"""
Pure request/response transformations used by the proxy handler.

Each function takes the immutable proxy configuration (or the values it
needs) explicitly and returns new header collections or strings; none of
them mutates its input.
"""
