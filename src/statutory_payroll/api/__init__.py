"""HTTP surface for statutory rule administration."""
