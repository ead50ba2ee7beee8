"""
Broker Topology Engine HTTP API
"""
