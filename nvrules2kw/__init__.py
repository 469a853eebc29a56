"""Convert NeuVector Admission Control rules into Kubewarden policies."""

__version__ = "0.1.0"