"""Core rasterclass pipeline.

This package contains:
- Accelerator context and hardware discovery
- Tensor descriptors
- Inference invoker
- Result reporter
- ClassificationEngine: batch orchestration
"""
