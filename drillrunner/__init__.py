"""Run, verify, watch and list compile-and-test programming exercises."""

__version__ = "5.5.1"