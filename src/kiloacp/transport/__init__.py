"""Transport layer: ACP over stdio."""
