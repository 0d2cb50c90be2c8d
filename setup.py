import os

from setuptools import setup

# the timing engine can be compiled with mypyc, but it's opt-in:
# with mypy installed, DAMPER_COMPILE=1 pip install --no-build-isolation .
ext_modules = []
if os.getenv("DAMPER_COMPILE"):
    from mypyc.build import mypycify

    ext_modules = mypycify(["src/damper/_throttler.py"])

setup(ext_modules=ext_modules)
