"""
XMAP match stream decoder.

Client and incremental decoder for the length-prefixed binary stream of
genome-mapping matches produced by the XMAP matching service.
"""

__version__ = "1.0.0"
__author__ = "Data Tecnica International"
