"""HTTP and WebSocket surface for ComputeVis."""
