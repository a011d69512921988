"""
feedforward package
~~~~~~~~~~~~~~~~~~~

Fully-connected feed-forward neural network trained by backpropagation.
Contains the dense matrix engine, the network engine, data loading
utilities, a command-line trainer and the training API server.
"""

__version__ = "1.0.0"
