"""Unit generation: outline, step detail, assembly, legacy and single-activity generators."""
