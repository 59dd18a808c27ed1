"""
fleet_tuner

This package computes memory and processor settings for the nodes of a
configuration management control plane.

We keep modules small and well separated:
core contains shared data structures, the settings catalog, and errors
topology classifies declared roles or discovered memberships
budget contains tier functions, the checkpoint pipeline, and per profile recipes
aggregate contains common settings extraction and capacity estimates
inventory contains fact source plugins
output contains the Hiera YAML store
runner and cli compose a tuning run
"""
