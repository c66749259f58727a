"""Lima-hosted Linux builder VM with first-boot SSH trust bootstrap."""

__version__ = '0.1.0'
