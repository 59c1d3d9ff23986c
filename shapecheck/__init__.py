"""
shapecheck: static verification of tensor-shape invariants.

Turns SSA-form IR of compiled numerical code into shape, rank and dimension
constraints and proves or refutes the program's shape assertions with Z3.
"""

__version__ = "0.1.0"
