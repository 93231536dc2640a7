"""Module __init__: shared helpers."""
#
# KEY MODULES:
# - **async_helpers.py**: Task creation/cancellation that never loses exceptions
#
