"""Band decomposition and accelerated band kernels."""
