"""Row normalization, schema detection and matching."""
