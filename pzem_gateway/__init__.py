"""
PZEM Gateway Client

Reads PZEM energy meters sharing one Modbus TCP gateway.
"""

__version__ = "0.1.0"
