"""
Pipes Domain

Storage-less relay of one body from a sender to a receiver.
"""

from .relay import PipeRelay, PipeTransfer

__all__ = ["PipeRelay", "PipeTransfer"]
