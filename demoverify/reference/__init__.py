"""Reference dataset resolution and loading."""
