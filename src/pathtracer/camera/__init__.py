"""Camera module for primary ray generation.

Components:
    thin_lens: Thin-lens camera with depth of field and a shutter window

Ray generation uses normalized image coordinates:
    s in [0, 1]: left to right across image
    t in [0, 1]: bottom to top across image
"""
