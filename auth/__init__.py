"""auth/ -- Authentication package for CareCoord.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/, care/, or notify/.
api/ imports from auth/, not the other way around.
"""
