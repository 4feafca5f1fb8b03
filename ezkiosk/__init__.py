"""
EZ KIOSK OPS
Host commission splits and Google Drive folder lifecycle for advertising kiosks
"""

__version__ = "1.0.0"
