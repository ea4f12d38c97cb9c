"""flowchain: composable bijections, coupling layers and named-record pipelines in JAX."""

import importlib.metadata

__version__ = importlib.metadata.version("flowchain")
