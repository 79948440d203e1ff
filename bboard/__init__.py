"""
BBoard - Shared Bulletin Board Server

A multi-client, line-oriented text protocol server holding one shared
board of notes and pins.
"""

__version__ = "0.1.0"
__author__ = "BBoard Project"
