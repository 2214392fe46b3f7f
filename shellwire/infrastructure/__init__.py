"""
Infrastructure layer: reactor, SSH transport, configuration and logging.
"""
