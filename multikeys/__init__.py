"""
multikeys — distribute SSH authorized_keys across hosts behind chained gateways
"""
__version__ = "0.3.0"
