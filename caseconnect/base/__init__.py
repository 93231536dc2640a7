"""Module __init__: foundational pieces shared by the server and the probe client."""
#
# WHAT'S IN THIS MODULE:
# - config.py: Environment-driven configuration and logging setup
#
