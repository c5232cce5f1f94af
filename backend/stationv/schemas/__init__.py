# stationv/schemas/__init__.py
"""
Schema module initialization.
Exports all schema classes from submodules for convenient imports.
"""
from .channel import *
from .frames import *
from .events import *
