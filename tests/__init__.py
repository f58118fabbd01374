"""Test package for the Chunking Trainer.

Core tests drive the digit span engine with a ``FakeClock`` so timers fire
without real waiting. The UI smoke tests run headlessly using pygame's dummy
video driver to avoid opening real windows. To run these tests, execute
``pytest`` from the project root.
"""
