"""Locate and reconstruct one function from a compiler-emitted assembly unit."""
