"""State layer.

Holds the bounded tag read history and the broker connectivity state
shared between the broker link and viewer pushes.
"""
